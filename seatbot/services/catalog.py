from __future__ import annotations

from seatbot.core.errors import NotFound
from seatbot.domain import PRODUCTS, Product
from seatbot.repo import SheetRepo


class CatalogService:
    """Product definitions, read fresh on every call."""

    def __init__(self, repo: SheetRepo) -> None:
        self._repo = repo

    async def list_products(self) -> list[Product]:
        table = await self._repo.read(PRODUCTS)
        return [Product.from_record(r) for r in table if r.text("product_id")]

    async def list_active_products(self) -> list[Product]:
        return [p for p in await self.list_products() if p.active]

    async def find_product_by_id(self, product_id: str) -> Product:
        want = (product_id or "").strip()
        for p in await self.list_active_products():
            if p.product_id == want:
                return p
        raise NotFound(f"Produk {want or '-'} tidak ditemukan atau tidak aktif")
