"""
Seed script: vendors, cost centers and approver bindings for a fresh store.
Run from the project root: python -m scripts.seed
Uses whichever backend STORE_BACKEND selects.
"""
import asyncio
import os
import sys
from decimal import Decimal

# Ensure the project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from p2p.config import get_settings
from p2p.logging_config import setup_logging
from p2p.schemas.status import VendorStatus
from p2p.schemas.approver import CostCenterApproverCreate
from p2p.schemas.cost_center import CostCenterCreate
from p2p.schemas.vendor import VendorCreate
from p2p.services import approval_service, cost_center_service, vendor_service
from p2p.services.identity import Identity
from p2p.services.store import build_store

SEED_ADMIN = Identity.for_user("seed-admin", "Seed Admin", "admin@example.com", role="ADMIN")

VENDORS = [
    VendorCreate(
        name="Office Supplies Co.",
        contact_person="Sarah Johnson",
        email="sjohnson@officesupplies.co",
        phone="+1-555-123-4567",
        address="123 Business Ave, Suite 200, Commerce City, CC 54321",
        tax_id="TAX-123456789",
        payment_terms="Net 30",
        categories=["Furniture", "Office Supplies", "Electronics"],
    ),
    VendorCreate(
        name="Marketing Materials Inc.",
        contact_person="Robert Williams",
        email="rwilliams@marketingmaterials.com",
        phone="+1-555-987-6543",
        address="456 Creative Blvd, Marketing Town, MT 98765",
        tax_id="TAX-987654321",
        payment_terms="Net 45",
        categories=["Marketing Materials", "Printing", "Design Services"],
    ),
    VendorCreate(
        name="Tech Solutions Ltd.",
        contact_person="Amanda Chen",
        email="achen@techsolutions.ltd",
        phone="+1-555-456-7890",
        address="789 Tech Park Dr, Innovation City, IC 12345",
        tax_id="TAX-456789123",
        payment_terms="Net 15",
        categories=["IT Services", "Software", "Hardware"],
    ),
    VendorCreate(
        name="Premium Catering Services",
        contact_person="Lisa Rodriguez",
        email="lrodriguez@premiumcatering.services",
        phone="+1-555-234-5678",
        address="567 Culinary St, Gourmet District, GD 67890",
        tax_id="TAX-234567890",
        payment_terms="Net 15",
        categories=["Catering", "Events", "Food Services"],
        status=VendorStatus.INACTIVE,
    ),
]

COST_CENTERS = [
    CostCenterCreate(id="CC001", name="Operations", description="General operating expenses"),
    CostCenterCreate(id="CC002", name="Marketing", description="Campaigns and printed material"),
    CostCenterCreate(id="CC003", name="IT", description="Hardware, software and services"),
    CostCenterCreate(id="CC004", name="Facilities"),
    CostCenterCreate(id="CC005", name="Human Resources"),
]

BINDINGS = [
    CostCenterApproverCreate(
        user_id="3", user_name="Jane Approver", user_email="approver@example.com",
        cost_center="CC001", approval_limit=Decimal("25000"),
    ),
    CostCenterApproverCreate(
        user_id="1", user_name="Admin User", user_email="admin@example.com",
        cost_center="CC002", approval_limit=Decimal("50000"),
    ),
    CostCenterApproverCreate(
        user_id="3", user_name="Jane Approver", user_email="approver@example.com",
        cost_center="CC003", approval_limit=Decimal("10000"),
    ),
]


async def seed():
    settings = get_settings()
    store = build_store(settings)
    try:
        if await vendor_service.count_vendors(store):
            print("Seed data already exists. Skipping.")
            return

        for vendor in VENDORS:
            await vendor_service.create_vendor(store, SEED_ADMIN, vendor)
        for cost_center in COST_CENTERS:
            await cost_center_service.create_cost_center(store, SEED_ADMIN, cost_center)
        for binding in BINDINGS:
            await approval_service.create_binding(store, SEED_ADMIN, binding)
        print(
            f"Seeded {len(VENDORS)} vendors, {len(COST_CENTERS)} cost centers "
            f"and {len(BINDINGS)} approver bindings."
        )
    finally:
        await store.close()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
