# servertracker/crud/api_query_metric.py
from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.crud.server import dialect_insert
from servertracker.models.api_query_metric import ApiQueryMetric
from servertracker.schemas.stats import ApiQueryMetricRead, ApiQueryRouteMetric
from servertracker.utils.text import sanitize_text


class CRUDApiQueryMetric:
    async def record(
        self,
        db: AsyncSession,
        *,
        ip_address: str | None,
        route: str | None,
        user_agent: Optional[str],
        timestamp: int,
    ) -> bool:
        """Upsert one hit; returns False when ip/route are unusable."""
        ip_address = sanitize_text(ip_address)
        route = sanitize_text(route)
        if not ip_address or not route:
            return False

        table = ApiQueryMetric.__table__
        stmt = dialect_insert(db, table).values(
            ip_address=ip_address,
            route=route,
            user_agent=sanitize_text(user_agent),
            last_queried_at=timestamp,
            query_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["ip_address", "route"],
            set_={
                "user_agent": func.coalesce(stmt.excluded.user_agent, table.c.user_agent),
                "last_queried_at": stmt.excluded.last_queried_at,
                "query_count": table.c.query_count + 1,
            },
        )
        await db.execute(stmt)
        await db.commit()
        return True

    async def list_by_ip(self, db: AsyncSession) -> List[ApiQueryMetricRead]:
        stmt = select(ApiQueryMetric).order_by(
            ApiQueryMetric.ip_address.asc(),
            ApiQueryMetric.route.asc(),
        )
        res = await db.execute(stmt)

        by_ip: Dict[str, ApiQueryMetricRead] = {}
        for row in res.scalars().all():
            metric = by_ip.get(row.ip_address)
            if metric is None:
                metric = ApiQueryMetricRead(
                    ip_address=row.ip_address,
                    total_queries=0,
                    last_queried_at=row.last_queried_at,
                    routes=[],
                )
                by_ip[row.ip_address] = metric

            metric.total_queries += row.query_count
            metric.last_queried_at = max(metric.last_queried_at, row.last_queried_at)
            metric.routes.append(
                ApiQueryRouteMetric(
                    route=row.route,
                    query_count=row.query_count,
                    last_queried_at=row.last_queried_at,
                    last_user_agent=row.user_agent,
                )
            )

        for metric in by_ip.values():
            metric.routes.sort(key=lambda r: (r.last_queried_at, r.query_count), reverse=True)

        return sorted(
            by_ip.values(),
            key=lambda m: (m.total_queries, m.last_queried_at),
            reverse=True,
        )


api_query_metric = CRUDApiQueryMetric()
