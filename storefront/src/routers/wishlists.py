"""Wishlist router. One wishlist per authenticated user."""

import structlog
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from storefront.src.dependencies import get_current_user, get_wishlist_service, require_admin
from storefront.src.models.auth import CurrentUser
from storefront.src.models.common import ErrorResponse, envelope
from storefront.src.models.wishlist import WishlistItemRequest
from storefront.src.services.wishlist_service import WishlistService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/wishlists",
    tags=["Wishlists"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        409: {"model": ErrorResponse, "description": "Conflict"}
    }
)


@router.get("/my-wishlist", summary="Get my wishlist")
async def my_wishlist(
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    return envelope(await wishlist_service.my_wishlist(current_user))


@router.post("/add-item", summary="Add artwork to wishlist")
async def add_item(
    request: WishlistItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    """
    Add an artwork to the caller's wishlist.

    **Error Responses:**
    - 404: unknown artwork
    - 409: artwork already in the wishlist
    """
    return envelope(await wishlist_service.add_item(current_user, request.artwork_id))


@router.delete("/remove-item", summary="Remove artwork from wishlist")
async def remove_item(
    request: WishlistItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    return envelope(await wishlist_service.remove_item(current_user, request.artwork_id))


@router.delete("/clear", summary="Empty wishlist")
async def clear_wishlist(
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    return envelope(await wishlist_service.clear(current_user))


@router.get("/check/{artwork_id}", summary="Is artwork wishlisted")
async def check_item(
    artwork_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    return envelope(await wishlist_service.contains(current_user, artwork_id))


@router.get("/recommendations", summary="Recommended artworks")
async def recommendations(
    limit: int = Query(5, ge=1),
    current_user: CurrentUser = Depends(get_current_user),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    """
    Other works by artists already in the wishlist, or popular artworks
    when the wishlist is empty. `meta.recommendationType` tells which.
    """
    artworks, kind = await wishlist_service.recommendations(current_user, limit)
    return envelope(artworks, recommendationType=kind, count=len(artworks))


@router.get("/stats", summary="Wishlist statistics")
async def wishlist_statistics(
    admin: CurrentUser = Depends(require_admin),
    wishlist_service: WishlistService = Depends(get_wishlist_service)
) -> Dict[str, Any]:
    return envelope(await wishlist_service.statistics())
