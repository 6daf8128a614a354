"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from village_bank.domain.lifecycle import LoanController
from village_bank.infrastructure.clients.rpc import RpcClient
from village_bank.infrastructure.database.repositories import LoanRepository, ProfileRoleLookup
from village_bank.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity set by the authenticating proxy"""
    return x_user_id


def get_rpc_client() -> RpcClient:
    """Provide remote procedure client instance"""
    return RpcClient()


def get_loan_controller(
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
    rpc_client: RpcClient = Depends(get_rpc_client),
) -> LoanController:
    """Wire the lifecycle controller to this request's session and caller"""
    return LoanController(
        store=LoanRepository(db),
        roles=ProfileRoleLookup(db, user_id),
        rpc=rpc_client,
    )
