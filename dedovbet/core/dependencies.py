from fastapi import Depends

from ..services import AccountService, UserRepository
from .config import Settings, get_settings
from .security import Argon2Params
from .store import UserFile, get_user_file


def get_repository(
    user_file: UserFile = Depends(get_user_file),
    settings: Settings = Depends(get_settings),
) -> UserRepository:
    return UserRepository(
        user_file,
        starting_balance=settings.starting_balance,
        hash_params=Argon2Params(
            iterations=settings.argon2_iterations,
            memory_cost_kib=settings.argon2_memory_kib,
            lanes=settings.argon2_lanes,
        ),
    )


def get_account_service(
    repository: UserRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    return AccountService(repository, settings)
