from fastapi import Depends, HTTPException, Query, status

from storepulse.schemas import ShopToken
from storepulse.services.cache import ShopStore, get_shop_store


def get_store() -> ShopStore:
    return get_shop_store()


def get_shop_token(shop: str = Query(""), store: ShopStore = Depends(get_store)) -> tuple[str, ShopToken]:
    """For JSON endpoints: 401 unless the shop has a stored token."""
    token = store.get_token(shop) if shop else None
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return shop, token
