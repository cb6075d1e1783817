"""FastAPI dependencies resolving the services built at startup."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from gcbulkedit.services import BlogRepository, CustomerLedger, PaymentGateway, RedisCustomerStore


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not available",
        )
    return service


async def get_ledger(request: Request) -> CustomerLedger:
    """Get the customer ledger."""
    return _service(request, "ledger")


async def get_gateway(request: Request) -> PaymentGateway:
    """Get the payment gateway client."""
    return _service(request, "gateway")


async def get_customer_store(request: Request) -> RedisCustomerStore:
    """Get the customer store."""
    return _service(request, "customer_store")


async def get_blog_repository(request: Request) -> BlogRepository:
    """Get the blog repository."""
    return _service(request, "blog")


# Type aliases for cleaner dependency injection
Ledger = Annotated[CustomerLedger, Depends(get_ledger)]
Gateway = Annotated[PaymentGateway, Depends(get_gateway)]
CustomerStore = Annotated[RedisCustomerStore, Depends(get_customer_store)]
Blog = Annotated[BlogRepository, Depends(get_blog_repository)]
