from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import select

from ..deps import SessionDep, get_current_user
from ..models.models import (Category, CategoryCreate, CategoryRead,
                             CategoryUpdate, User)

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _get_own_category(session, category_id: int, user: User) -> Category:
    category = session.get(Category, category_id)
    if not category or category.user_id != user.id:
        raise HTTPException(status_code=404, detail="Not found")
    return category


@router.get("", response_model=list[CategoryRead])
def read_categories(
    session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
) -> list[CategoryRead]:
    db_categories = session.exec(
        select(Category).where(Category.user_id == current_user.id).order_by(Category.name)
    ).all()
    return [CategoryRead.serialize(category) for category in db_categories]


@router.post("", response_model=CategoryRead)
def create_category(
    category: CategoryCreate, session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
) -> CategoryRead:
    exists = session.exec(
        select(Category.id).where(Category.user_id == current_user.id, Category.name == category.name)
    ).first()
    if exists:
        raise HTTPException(status_code=409, detail="The resource already exists")

    new_category = Category(name=category.name, color=category.color, icon=category.icon, user_id=current_user.id)
    session.add(new_category)
    session.commit()
    session.refresh(new_category)
    return CategoryRead.serialize(new_category)


@router.put("/{category_id}", response_model=CategoryRead)
def update_category(
    category: CategoryUpdate,
    category_id: int,
    session: SessionDep,
    current_user: Annotated[User, Depends(get_current_user)],
) -> CategoryRead:
    db_category = _get_own_category(session, category_id, current_user)

    category_data = category.model_dump(exclude_unset=True)
    for key, value in category_data.items():
        if key == "name" and not value:
            raise HTTPException(status_code=400, detail="Bad request")
        setattr(db_category, key, value)

    session.add(db_category)
    session.commit()
    session.refresh(db_category)
    return CategoryRead.serialize(db_category)


@router.delete("/{category_id}")
def delete_category(
    category_id: int, session: SessionDep, current_user: Annotated[User, Depends(get_current_user)]
):
    db_category = _get_own_category(session, category_id, current_user)
    # Expenses keep existing, category_id is set to NULL by the FK
    session.delete(db_category)
    session.commit()
    return {}
