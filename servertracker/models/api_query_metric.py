# servertracker/models/api_query_metric.py
from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from servertracker.db.base_class import Base


class ApiQueryMetric(Base):
    """Per (client ip, route) usage counter for the read API."""

    __tablename__ = "api_query_metrics"

    ip_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    route: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    last_queried_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    query_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


Index(
    "idx_api_query_metrics_last",
    ApiQueryMetric.last_queried_at,
)
