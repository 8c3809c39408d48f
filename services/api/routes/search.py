"""Supplier search endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_orchestrator
from ..models import (
    BatchSearchRequest,
    BatchSearchResponse,
    ProductModel,
    SearchRequest,
    SearchResponse,
    SupplierInfo,
)
from core.search_orchestrator import SearchOrchestrator
from services.aggregation import merge_results


router = APIRouter()


def _reject_unknown(orchestrator: SearchOrchestrator, suppliers: List[str]) -> None:
    unknown = [s for s in suppliers if s not in orchestrator.suppliers]
    if unknown:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown supplier(s): {', '.join(unknown)}",
        )


@router.post("/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_supplier(
    req: SearchRequest,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """
    Search one supplier's catalog through its browser tab.

    A page that cannot be read yields an empty product list and an
    ``error`` diagnostic, never a 5xx.

    Raises:
        HTTPException: 404 if the supplier is not configured

    Example response:
        ```json
        {
            "supplier": "mobilax",
            "products": [
                {
                    "name": "Ecran iPhone 11 Noir",
                    "reference": "MBX-IP11-LCD",
                    "supplier_label": "Mobilax",
                    "price": 24.9,
                    "availability": "in_stock",
                    "source_url": "https://www.mobilax.fr/ecran-iphone-11.html",
                    "image_url": ""
                }
            ]
        }
        ```
    """
    _reject_unknown(orchestrator, [req.supplier])
    result = await orchestrator.search(req.supplier, req.query)
    return SearchResponse.from_result(result)


@router.post("/search/batch", response_model=BatchSearchResponse)
async def search_suppliers(
    req: BatchSearchRequest,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """
    Search several suppliers sequentially and merge the offers by price.

    Raises:
        HTTPException: 404 if any supplier is not configured
    """
    _reject_unknown(orchestrator, req.suppliers)
    results = await orchestrator.search_many(req.suppliers, req.query)
    return BatchSearchResponse(
        products=[ProductModel.from_record(p) for p in merge_results(results)],
        errors={r.supplier: r.error for r in results if r.error},
    )


@router.get("/suppliers", response_model=List[SupplierInfo])
async def list_suppliers(orchestrator: SearchOrchestrator = Depends(get_orchestrator)):
    """List the configured suppliers."""
    return [SupplierInfo.from_profile(profile) for profile in orchestrator.suppliers]
