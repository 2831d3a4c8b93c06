"""
Product reviews written by one user.

A user holds at most one review per product: `add` refuses a second one and
the caller edits the existing review with `update` instead.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from .errors import Changeset, ErrorKind, Result
from .schemas import Review, now_utc

logger = logging.getLogger(__name__)

REVIEWS = "reviews"


def _valid_rating(rating: Any) -> bool:
    return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5


def _clean_comment(comment: Optional[str]) -> Optional[str]:
    return (comment or "").strip() or None


@dataclass(frozen=True)
class RatingSummary:
    rating: float
    review_count: int


def rating_summary(reviews: Iterable[Review]) -> RatingSummary:
    """Average rating rounded half-up to one decimal, plus the review count."""
    ratings = [r.rating for r in reviews]
    if not ratings:
        return RatingSummary(0.0, 0)
    avg = (Decimal(sum(ratings)) / len(ratings)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return RatingSummary(float(avg), len(ratings))


class ReviewBook:
    collection = REVIEWS

    def __init__(self, user_id: str, reviews: Iterable[Review] = ()):
        self.user_id = user_id
        self._reviews: Dict[str, Review] = {r.id: r for r in reviews}

    def add(self, product_id: str, rating: int, comment: Optional[str] = None,
            order_id: Optional[str] = None) -> Result[Review]:
        if not _valid_rating(rating):
            return Result.failure(ErrorKind.VALIDATION, "Please select a rating between 1 and 5 stars")
        if self.for_product(product_id) is not None:
            return Result.failure(ErrorKind.ALREADY_PRESENT, "You have already reviewed this product")
        review = Review(
            user_id=self.user_id,
            product_id=product_id,
            order_id=order_id,
            rating=rating,
            comment=_clean_comment(comment),
        )
        self._reviews[review.id] = review
        changes = Changeset()
        changes.put(review.id, review.record())
        return Result.success(review, changes)

    def update(self, review_id: str, rating: Optional[int] = None, comment: Optional[str] = None) -> Result[Review]:
        current = self._reviews.get(review_id)
        if current is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Review not found")
        if rating is not None and not _valid_rating(rating):
            return Result.failure(ErrorKind.VALIDATION, "Please select a rating between 1 and 5 stars")
        fields: Dict[str, Any] = {"updated_at": now_utc()}
        if rating is not None:
            fields["rating"] = rating
        if comment is not None:
            fields["comment"] = _clean_comment(comment)
        updated = current.model_copy(update=fields)
        self._reviews[review_id] = updated
        changes = Changeset()
        changes.put(review_id, updated.record())
        return Result.success(updated, changes)

    def remove(self, review_id: str) -> Result[Review]:
        removed = self._reviews.pop(review_id, None)
        if removed is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Review not found")
        changes = Changeset()
        changes.delete(review_id)
        return Result.success(removed, changes)

    def for_product(self, product_id: str) -> Optional[Review]:
        for review in self._reviews.values():
            if review.product_id == product_id:
                return review
        return None

    def get(self, review_id: str) -> Optional[Review]:
        return self._reviews.get(review_id)

    def reviews(self) -> List[Review]:
        return sorted(self._reviews.values(), key=lambda r: r.created_at, reverse=True)

    def replace_all(self, records: Iterable[Dict[str, Any]]):
        reviews: Dict[str, Review] = {}
        for rec in records:
            try:
                review = Review.model_validate(rec)
            except ValueError:
                logger.warning("skipping malformed review record for user %s: %r", self.user_id, rec)
                continue
            reviews[review.id] = review
        self._reviews = reviews
