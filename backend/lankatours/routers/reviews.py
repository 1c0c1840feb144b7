from fastapi import APIRouter, Depends, HTTPException, Query

from lankatours.auth import current_identity
from lankatours.models import (
    EligibilityCheck,
    Identity,
    Review,
    ReviewCreateRequest,
    ReviewPage,
    ReviewUpdateRequest,
)
from lankatours.routers.errors import raise_http_error
from lankatours.services.eligibility import NOT_OWNER
from lankatours.services.errors import MarketplaceError
from lankatours.services.marketplace import marketplace

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("/eligibility/{booking_id}", response_model=EligibilityCheck)
def check_eligibility(booking_id: str, identity: Identity = Depends(current_identity)):
    try:
        check = marketplace.eligibility.check(booking_id, identity.user_id)
    except MarketplaceError as exc:
        raise_http_error(exc)
    if check.reason == NOT_OWNER:
        raise HTTPException(status_code=403, detail="Not authorized to review this booking")
    return check


@router.post("", response_model=Review, status_code=201)
def create_review(request: ReviewCreateRequest, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.reviews.create_review(identity, request)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("/my-reviews", response_model=list[Review])
def my_reviews(identity: Identity = Depends(current_identity)):
    return marketplace.reviews.list_for_author(identity.user_id)


@router.get("/my-services", response_model=list[Review])
def my_service_reviews(identity: Identity = Depends(current_identity)):
    return marketplace.reviews.list_for_service_owner(identity.user_id)


@router.get("/{target_type}/{target_id}", response_model=ReviewPage)
def list_target_reviews(
    target_type: str,
    target_id: str,
    page: int = Query(default=1),
    page_size: int = Query(default=10, alias="limit"),
):
    try:
        return marketplace.reviews.list_for_target(target_type, target_id, page=page, page_size=page_size)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.put("/{review_id}", response_model=Review)
def update_review(
    review_id: str,
    request: ReviewUpdateRequest,
    identity: Identity = Depends(current_identity),
):
    try:
        return marketplace.reviews.update_review(review_id, identity, request)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.delete("/{review_id}")
def delete_review(review_id: str, identity: Identity = Depends(current_identity)):
    try:
        marketplace.reviews.delete_review(review_id, identity)
    except MarketplaceError as exc:
        raise_http_error(exc)
    return {"deleted": True, "review_id": review_id}
