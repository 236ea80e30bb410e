import logging
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from tenantsql.core import schemas, models
from tenantsql.core.security import hash_password
from tenantsql.api.dependencies import db_dep, user_dep

router = APIRouter(prefix="/profile", tags=["Users"])


# Add user
@router.post(
    "/signup",
    response_model=schemas.UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(user: schemas.CreateUser, db: db_dep):
    # Validate whether a user already exists
    query = select(models.User).where(models.User.email == user.email)
    result = await db.execute(query)
    db_user = result.scalars().first()

    if db_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="User already exists"
        )

    if user.company_id is not None and await db.get(models.Company, user.company_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Company not found"
        )

    # Hash the password and add new user to the db
    try:
        hashed_pwd = hash_password(user.password)
        new_user = models.User(
            email=user.email,
            password=hashed_pwd,
            role=user.role.value,
            company_id=user.company_id,
        )
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)
        return new_user
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to add a new user: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign up",
        )


@router.get("/me", response_model=schemas.UserResponse)
async def get_me(current_user: user_dep):
    return current_user
