# servertracker/api/routes/polls.py
from fastapi import APIRouter, Depends, status

from servertracker.api.deps import get_session_factory
from servertracker.schemas import PollResult, PollSnapshot
from servertracker.services.session_ledger import ingest_poll

router = APIRouter()


@router.post(
    "/",
    response_model=PollResult,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_poll_snapshot(
    snapshot: PollSnapshot,
    session_factory=Depends(get_session_factory),
):
    """
    Recebe o resultado de uma consulta feita por um poller externo
    e aplica registry + sessões numa única transação.
    """
    return await ingest_poll(snapshot, session_factory=session_factory)
