"""
Customer API Endpoints.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.core.dependencies import require_admin
from rental_admin.app.core.exceptions import ResourceNotFoundError
from rental_admin.app.db.session import get_db
from rental_admin.app.models.customer import Customer
from rental_admin.app.schemas.customer import CustomerCreate, CustomerUpdate, CustomerResponse, CustomerListResponse
from rental_admin.app.services.audit import AuditAction, AuditEntity, record_audit

router = APIRouter(tags=["Customers"])


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all customers, newest first."""
    result = await db.execute(select(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()))
    customers = result.scalars().all()

    return CustomerListResponse(
        customers=[CustomerResponse.model_validate(c) for c in customers],
        total=len(customers)
    )


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    # Empty strings from the admin form are stored as NULL
    new_customer = Customer(
        full_name=customer_data.full_name,
        email=customer_data.email or None,
        phone=customer_data.phone or None,
        driver_license_number=customer_data.driver_license_number or None,
        notes=customer_data.notes or None
    )

    db.add(new_customer)
    await db.commit()
    await db.refresh(new_customer)

    await record_audit(
        db=db,
        action=AuditAction.CREATE,
        entity_type=AuditEntity.CUSTOMER,
        entity_id=new_customer.id,
        diff=customer_data.model_dump(),
        actor_id=admin["actor_id"]
    )

    return CustomerResponse.model_validate(new_customer)


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_data: CustomerUpdate,
    customer_id: int = Path(..., description="Customer ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update customer details. Only fields present in the body change."""
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise ResourceNotFoundError("Customer", customer_id)

    old_data = CustomerResponse.model_validate(customer).model_dump(mode="json")

    for field, value in customer_data.model_dump(exclude_unset=True).items():
        if field == "full_name" and not value:
            continue
        setattr(customer, field, value or None)

    await db.commit()
    await db.refresh(customer)

    response = CustomerResponse.model_validate(customer)
    await record_audit(
        db=db,
        action=AuditAction.UPDATE,
        entity_type=AuditEntity.CUSTOMER,
        entity_id=customer.id,
        diff={"old": old_data, "new": response.model_dump(mode="json")},
        actor_id=admin["actor_id"]
    )

    return response
