import uuid
from datetime import datetime, time, timezone
from typing import Dict

from sqlmodel import Session, select, func

from tenx_cards.models.usage_log import UsageLog
from tenx_cards.utils.clock import utcnow


# Salva um log por chamada bem-sucedida ao provedor
def log_usage(
    db: Session,
    user_id: uuid.UUID,
    model_id: str,
    usage_data: Dict[str, int],
    time_taken: float,
    tag: str,
):
    if not usage_data:
        return

    log = UsageLog(
        user_id=user_id,
        model_id=model_id,
        prompt_tokens=usage_data.get("prompt_tokens", 0),
        completion_tokens=usage_data.get("completion_tokens", 0),
        total_tokens=usage_data.get("total_tokens", 0),
        time_taken_seconds=time_taken,
        context_tag=tag,
    )
    db.add(log)
    db.commit()


def _start_of_today() -> datetime:
    return datetime.combine(utcnow().date(), time.min, tzinfo=timezone.utc)


# Relatório do usuário (usado na rota GET /api/usage)
def get_daily_usage_stats(db: Session, user_id: uuid.UUID):
    start_of_day = _start_of_today()

    # Agrupa por modelo para saber qual está gastando mais
    statement = (
        select(
            UsageLog.model_id,
            func.count(UsageLog.id).label("request_count"),
            func.sum(UsageLog.total_tokens).label("total_tokens_sum"),
            func.sum(UsageLog.time_taken_seconds).label("total_time"),
        )
        .where(UsageLog.timestamp >= start_of_day)
        .where(UsageLog.user_id == user_id)
        .group_by(UsageLog.model_id)
    )

    results = db.exec(statement).all()

    stats = []
    grand_total_tokens = 0
    grand_total_requests = 0

    for row in results:
        model, reqs, tokens, total_time = row
        tokens = tokens or 0
        grand_total_tokens += tokens
        grand_total_requests += reqs

        stats.append({
            "model": model,
            "requests_today": reqs,
            "tokens_today": tokens,
            "avg_latency": round(total_time / reqs, 2) if reqs > 0 else 0,
        })

    return {
        "date": str(start_of_day.date()),
        "summary": {
            "total_requests": grand_total_requests,
            "total_tokens": grand_total_tokens,
        },
        "by_model": stats,
    }
