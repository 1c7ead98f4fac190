"""
app/api/users.py

Purpose: Account and address book endpoints for the calling user

- Signup (public)
- Profile read / update and account deletion
- Nested address book addressed by active index
- Favorite kitchens
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path, Request

from app.api.deps import client_ip, get_current_user_id
from app.schemas.response import SuccessResponse
from app.schemas.user import AddressCreate, AddressUpdate, FavoritesAdd, ProfileUpdate, SignupRequest
from app.services import address_service, user_service
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/users")


@router.post("", response_model=SuccessResponse[Dict[str, Any]], status_code=201)
async def signup(body: SignupRequest, request: Request):
    """
    Creates an account. An invalid referral code does not block signup.
    """
    user = await user_service.create_user(
        fullname=body.fullname,
        email=body.email,
        phone=body.phone,
        password=body.password,
        referral_code=body.referral_code,
        username=body.username,
        gender=body.gender,
        ip_address=client_ip(request),
    )
    logger.info("Signup completed", extra={"user_id": user["user_id"]})
    return SuccessResponse(message="Account created", data=user)


@router.get("/me", response_model=SuccessResponse[Dict[str, Any]])
async def get_me(user_id: str = Depends(get_current_user_id)):
    return SuccessResponse(data=await user_service.get_user(user_id))


@router.patch("/me", response_model=SuccessResponse[Dict[str, Any]])
async def update_me(body: ProfileUpdate, user_id: str = Depends(get_current_user_id)):
    user = await user_service.update_profile(user_id, body.model_dump(exclude_none=True))
    return SuccessResponse(message="Profile updated", data=user)


@router.delete("/me", response_model=SuccessResponse[None])
async def delete_me(request: Request, user_id: str = Depends(get_current_user_id)):
    await user_service.delete_account(user_id, ip_address=client_ip(request))
    return SuccessResponse(message="Account deleted")


# ============================================================================
# Addresses
# ============================================================================

@router.get("/me/addresses", response_model=SuccessResponse[List[Dict[str, Any]]])
async def get_addresses(user_id: str = Depends(get_current_user_id)):
    return SuccessResponse(data=await address_service.list_addresses(user_id))


@router.get("/me/addresses/deleted", response_model=SuccessResponse[List[Dict[str, Any]]])
async def get_deleted_addresses(user_id: str = Depends(get_current_user_id)):
    return SuccessResponse(data=await address_service.list_deleted_addresses(user_id))


@router.post("/me/addresses", response_model=SuccessResponse[Dict[str, Any]], status_code=201)
async def create_address(body: AddressCreate, user_id: str = Depends(get_current_user_id)):
    address = await address_service.add_address(user_id, body.model_dump(exclude_none=True))
    return SuccessResponse(message="Address added", data=address)


@router.patch("/me/addresses/{index}", response_model=SuccessResponse[Dict[str, Any]])
async def update_address(
    body: AddressUpdate,
    index: int = Path(..., ge=0),
    user_id: str = Depends(get_current_user_id),
):
    address = await address_service.update_address(user_id, index, body.model_dump(exclude_none=True))
    return SuccessResponse(message="Address updated", data=address)


@router.delete("/me/addresses/{index}", response_model=SuccessResponse[None])
async def delete_address(
    index: int = Path(..., ge=0),
    user_id: str = Depends(get_current_user_id),
):
    await address_service.remove_address(user_id, index)
    return SuccessResponse(message="Address removed")


@router.post("/me/addresses/{address_id}/restore", response_model=SuccessResponse[Dict[str, Any]])
async def restore_address(address_id: str, user_id: str = Depends(get_current_user_id)):
    address = await address_service.restore_address(user_id, address_id)
    return SuccessResponse(message="Address restored", data=address)


@router.get("/me/favorites", response_model=SuccessResponse[List[str]])
async def get_favorites(user_id: str = Depends(get_current_user_id)):
    return SuccessResponse(data=await user_service.list_favorites(user_id))


@router.post("/me/favorites", response_model=SuccessResponse[List[str]])
async def add_favorites(body: FavoritesAdd, user_id: str = Depends(get_current_user_id)):
    favorites = await user_service.add_favorites(user_id, body.kitchen_ids)
    return SuccessResponse(message="Added to favorites", data=favorites)


@router.delete("/me/favorites/{kitchen_id}", response_model=SuccessResponse[List[str]])
async def remove_favorite(kitchen_id: str, user_id: str = Depends(get_current_user_id)):
    favorites = await user_service.remove_favorite(user_id, kitchen_id)
    return SuccessResponse(message="Removed from favorites", data=favorites)
