"""Repository routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.db import get_db
from ci_build_api.models import Repository
from ci_build_api.schemas import RepositoryCreate, RepositoryResponse

router = APIRouter(prefix="/repositories", tags=["repositories"])


@router.post("", response_model=RepositoryResponse, status_code=201)
async def create_repository(
    repository: RepositoryCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a repository."""
    existing = await db.execute(
        select(Repository)
        .where(Repository.owner_name == repository.owner_name)
        .where(Repository.name == repository.name)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Repository already exists")

    db_repository = Repository(owner_name=repository.owner_name, name=repository.name)
    db.add(db_repository)
    await db.commit()
    await db.refresh(db_repository)
    return db_repository


@router.get("/{repository_id}", response_model=RepositoryResponse)
async def get_repository(
    repository_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a repository, including its last build summary."""
    repository = await db.get(Repository, repository_id)
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repository
