"""Central model registry: import all models so Alembic autodiscover works."""

from p2p.database import Base  # noqa: F401

from p2p.models.purchase_requisition import PurchaseRequisitionRow  # noqa: F401
from p2p.models.purchase_order import PurchaseOrderRow  # noqa: F401
from p2p.models.goods_receipt import GoodsReceiptRow  # noqa: F401
from p2p.models.vendor import VendorRow  # noqa: F401
from p2p.models.cost_center_approver import CostCenterApproverRow  # noqa: F401
from p2p.models.cost_center import CostCenterRow  # noqa: F401
