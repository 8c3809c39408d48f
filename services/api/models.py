"""Pydantic models for API request/response schemas."""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.suppliers import SupplierProfile
from core.types import Availability, ProductRecord, SearchResult


class ProductModel(BaseModel):
    """One product offer found on a supplier page."""
    name: str = Field(..., description="Product name as shown by the supplier")
    reference: str = Field(default="", description="Supplier reference / SKU, may be empty")
    supplier_label: str = Field(..., description="Supplier display name")
    price: float = Field(..., ge=0, description="Price, 0 when unknown or login-gated")
    availability: Availability = Field(..., description="in_stock, out_of_stock or needs_login")
    source_url: str = Field(default="", description="Product page URL")
    image_url: str = Field(default="", description="Product image URL")

    @classmethod
    def from_record(cls, record: ProductRecord) -> "ProductModel":
        return cls(**record.to_dict())


class SearchRequest(BaseModel):
    """Search one supplier."""
    supplier: str = Field(..., min_length=1, description="Supplier identifier")
    query: str = Field(..., min_length=1, max_length=200, description="Search terms")

    class Config:
        json_schema_extra = {
            "example": {"supplier": "mobilax", "query": "ecran iphone 11"}
        }


class SearchResponse(BaseModel):
    """Products from one supplier, plus a diagnostic when the search failed."""
    supplier: str
    products: List[ProductModel] = Field(default_factory=list)
    error: Optional[str] = Field(default=None, description="Why no products came back")

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResponse":
        return cls(
            supplier=result.supplier,
            products=[ProductModel.from_record(p) for p in result.products],
            error=result.error,
        )


class BatchSearchRequest(BaseModel):
    """Search several suppliers, one after the other."""
    suppliers: List[str] = Field(..., min_length=1, description="Supplier identifiers")
    query: str = Field(..., min_length=1, max_length=200, description="Search terms")

    class Config:
        json_schema_extra = {
            "example": {"suppliers": ["mobilax", "utopya"], "query": "batterie iphone 11"}
        }


class BatchSearchResponse(BaseModel):
    """Merged products sorted by price (unknown prices last)."""
    products: List[ProductModel] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict, description="Diagnostics per supplier")


class SupplierInfo(BaseModel):
    key: str
    label: str
    search_url: str
    domains: List[str]

    @classmethod
    def from_profile(cls, profile: SupplierProfile) -> "SupplierInfo":
        return cls(
            key=profile.key,
            label=profile.label,
            search_url=profile.search_url,
            domains=list(profile.domains),
        )
