from app.schemas.message import ButtonMessage, OutboundMessage, QuickReplyMessage, TextMessage
from app.services.dataset_service import Record
from app.services.questionnaire import Question, Questionnaire


def question_message(question: Question) -> OutboundMessage:
    if question.options:
        return QuickReplyMessage(text=question.prompt, options=list(question.options))
    return TextMessage(text=question.prompt)


def continue_prompt(questionnaire: Questionnaire) -> QuickReplyMessage:
    return QuickReplyMessage(
        text=questionnaire.text("continue_prompt"),
        options=[questionnaire.keywords.proceed, questionnaire.text("stop_option")],
    )


def _line(label: str, value: str) -> str:
    return f"{label}：{value or '未提供'}"


def build_record_messages(record: Record, questionnaire: Questionnaire) -> list[OutboundMessage]:
    """Render a listing as title, detail and contact messages."""
    label = questionnaire.label_for_code

    title = record.title or record.address or record.id or "房屋資訊"
    detail = "\n".join(
        [
            "房屋資訊",
            _line("編號", record.id),
            _line("區域", record.area),
            _line("地址", record.address),
            _line("房型", record.type),
            _line("租金", f"{record.rent}元" if record.rent else ""),
            _line("網路", label(record.net) or record.net),
            _line("含水費", label(record.water) or record.water),
            _line("含電費", label(record.electricity) or record.electricity),
        ]
    )
    if record.description:
        detail += f"\n\n{record.description}"

    contact = "\n".join(["聯絡資訊", _line("房東", record.landlord), _line("電話", record.phone)])
    contact_message: OutboundMessage
    if record.url:
        contact_message = ButtonMessage(
            text=contact,
            url=record.url,
            button_title=questionnaire.text("contact_button") or "查看",
        )
    else:
        contact_message = TextMessage(text=contact)

    return [TextMessage(text=f"【{title}】"), TextMessage(text=detail), contact_message]
