"""User management, authentication and own-account endpoints."""

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from mundobebe.accounts.auth_flows import AuthFlowService
from mundobebe.accounts.profile import AccountService
from mundobebe.accounts.users import USER_LIST_PARAMS, UserManagementService
from mundobebe.actions.context import ActionContext
from mundobebe.api.context import SESSION_COOKIE, get_action_context, search_params, success
from mundobebe.messages import SUCCESS_MESSAGES


def create_users_router(get_users: Callable[[], UserManagementService]) -> APIRouter:
    router = APIRouter(prefix="/api/users", tags=["users"])

    @router.get("")
    async def list_users(request: Request, ctx: ActionContext = Depends(get_action_context)) -> Any:
        return await get_users().list_users(search_params(request, USER_LIST_PARAMS), ctx)

    @router.get("/role-counts")
    async def role_counts(ctx: ActionContext = Depends(get_action_context)) -> Any:
        return await get_users().role_counts(None, ctx)

    @router.post("", status_code=201)
    async def create_user(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        created = await get_users().create_user(payload, ctx)
        return success(SUCCESS_MESSAGES["USER_CREATED"], created)

    @router.post("/delete")
    async def delete_users(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        result = await get_users().delete_users(payload, ctx)
        return success(SUCCESS_MESSAGES["USER_DELETED"], result)

    @router.patch("/{user_id}")
    async def update_user(
        user_id: str,
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        updated = await get_users().update_user({**payload, "id": user_id}, ctx)
        return success(SUCCESS_MESSAGES["USER_UPDATED"], updated)

    return router


def create_auth_router(get_flows: Callable[[], AuthFlowService]) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/login")
    async def login(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> JSONResponse:
        result = await get_flows().login(payload, ctx)
        response = JSONResponse(success(SUCCESS_MESSAGES["LOGGED_IN"], result))
        response.set_cookie(
            SESSION_COOKIE,
            result["accessToken"],
            max_age=result["expiresIn"],
            httponly=True,
            samesite="lax",
        )
        return response

    @router.post("/logout")
    async def logout() -> JSONResponse:
        response = JSONResponse(success(None))
        response.delete_cookie(SESSION_COOKIE)
        return response

    @router.post("/register", status_code=201)
    async def register(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        created = await get_flows().register(payload, ctx)
        return success(SUCCESS_MESSAGES["REGISTERED_USER"], created)

    @router.post("/forgot-password")
    async def forgot_password(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        result = await get_flows().forgot_password(payload, ctx)
        return success(SUCCESS_MESSAGES["PASSWORD_RESET_SENT"], result)

    @router.post("/reset-password")
    async def reset_password(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        result = await get_flows().reset_password(payload, ctx)
        return success(SUCCESS_MESSAGES["PASSWORD_RESET"], result)

    return router


def create_invitations_router(get_flows: Callable[[], AuthFlowService]) -> APIRouter:
    router = APIRouter(prefix="/api/invitations", tags=["invitations"])

    @router.post("", status_code=201)
    async def create_invitation(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        result = await get_flows().create_invitation(payload, ctx)
        return success(SUCCESS_MESSAGES["INVITATION_SENT"], result)

    return router


def create_account_router(get_account: Callable[[], AccountService]) -> APIRouter:
    router = APIRouter(prefix="/api/account", tags=["account"])

    @router.get("")
    async def profile(ctx: ActionContext = Depends(get_action_context)) -> Any:
        return await get_account().profile(None, ctx)

    @router.patch("")
    async def update_profile(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        updated = await get_account().update_profile(payload, ctx)
        return success(SUCCESS_MESSAGES["PROFILE_UPDATED"], updated)

    @router.post("/password")
    async def change_password(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        result = await get_account().change_password(payload, ctx)
        return success(SUCCESS_MESSAGES["PASSWORD_CHANGED"], result)

    @router.post("/delete")
    async def delete_account(
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> JSONResponse:
        result = await get_account().delete_account(payload, ctx)
        response = JSONResponse(success(SUCCESS_MESSAGES["ACCOUNT_DELETED"], result))
        response.delete_cookie(SESSION_COOKIE)
        return response

    return router
