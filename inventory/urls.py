from rest_framework.routers import DefaultRouter

from inventory.views import (
    AssignmentViewSet,
    CategoryViewSet,
    ItemViewSet,
    LocationViewSet,
    ProductAssignmentViewSet,
    PurchaseOrderViewSet,
    StockAdjustmentViewSet,
    StockMovementViewSet,
    StockTransferViewSet,
    SupplierViewSet,
)

router = DefaultRouter()
router.register(r"items", ItemViewSet, basename="item")
router.register(r"categories", CategoryViewSet, basename="category")
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"suppliers", SupplierViewSet, basename="supplier")
router.register(r"stock-adjustments", StockAdjustmentViewSet, basename="stock-adjustment")
router.register(r"stock-transfers", StockTransferViewSet, basename="stock-transfer")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="purchase-order")
router.register(r"assignments", AssignmentViewSet, basename="assignment")
router.register(r"product-assignments", ProductAssignmentViewSet, basename="product-assignment")
router.register(r"stock-movements", StockMovementViewSet, basename="stock-movement")

urlpatterns = router.urls
