import math
from dataclasses import dataclass

from osoul.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from osoul.errors import ValidationError


@dataclass
class Page:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        errors = []
        if self.page < 1:
            errors.append({"field": "page", "message": "must be >= 1"})
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            errors.append({"field": "limit", "message": f"must be between 1 and {MAX_PAGE_SIZE}"})
        if errors:
            raise ValidationError("Invalid pagination", details=errors)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        total_pages = math.ceil(total / self.limit) if total else 0
        return {
            "currentPage": self.page,
            "totalPages": total_pages,
            "totalRecords": total,
            "recordsPerPage": self.limit,
            "hasNextPage": self.page < total_pages,
            "hasPrevPage": self.page > 1,
        }
