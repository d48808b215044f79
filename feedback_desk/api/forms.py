"""Form template routes."""

from fastapi import APIRouter

from ..core import CurrentUserDep, SessionDep
from ..schemas import FormTemplateResponse
from ..services import FormService, LifecycleError
from .errors import to_http_exception

router = APIRouter(prefix="/form-templates", tags=["forms"])


@router.get("/program/{program}", response_model=FormTemplateResponse)
async def get_program_template(
    program: str,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    """The active feedback form for a program."""
    try:
        template = await FormService(session).get_active_template(program)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FormTemplateResponse.model_validate(template)
