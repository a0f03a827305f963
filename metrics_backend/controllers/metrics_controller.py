"""
Metrics controller: financial, product, repair and customer metrics.

All routes require a session; bulk deletion requires Admin.  Product
metrics additionally expose `GET /user` for the caller's own records.
"""

from fastapi import APIRouter

from metrics_backend.controllers.resource_routes import build_resource_router
from metrics_backend.models.metrics import (
    CustomerMetrics,
    FinancialMetrics,
    ProductMetrics,
    RepairMetrics,
)
from metrics_backend.schemas import (
    CreateCustomerMetricsRequest,
    CreateFinancialMetricsRequest,
    CreateProductMetricsRequest,
    CreateRepairMetricsRequest,
    CustomerMetricsUpdate,
    FinancialMetricsUpdate,
    ProductMetricsUpdate,
    RepairMetricsUpdate,
)

router = APIRouter(prefix="/api/v1/metrics")

router.include_router(build_resource_router(
    prefix="/financial",
    tag="Financial Metrics",
    model=FinancialMetrics,
    create_request=CreateFinancialMetricsRequest,
    update_schema=FinancialMetricsUpdate,
))
router.include_router(build_resource_router(
    prefix="/product",
    tag="Product Metrics",
    model=ProductMetrics,
    create_request=CreateProductMetricsRequest,
    update_schema=ProductMetricsUpdate,
    owner_field="user_id",
))
router.include_router(build_resource_router(
    prefix="/repair",
    tag="Repair Metrics",
    model=RepairMetrics,
    create_request=CreateRepairMetricsRequest,
    update_schema=RepairMetricsUpdate,
))
router.include_router(build_resource_router(
    prefix="/customer",
    tag="Customer Metrics",
    model=CustomerMetrics,
    create_request=CreateCustomerMetricsRequest,
    update_schema=CustomerMetricsUpdate,
))
