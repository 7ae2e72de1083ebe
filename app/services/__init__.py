from app.services.conversation_service import (
    ConversationService,
    build_conversation_service,
    get_conversation_service,
)
from app.services.dataset_service import DatasetFormatError, DatasetService, Record
from app.services.state_machine import (
    Effect,
    InvalidTransitionError,
    advance,
    can_transition,
    on_dataset_ready,
    transition,
)
from app.services.result import Result
