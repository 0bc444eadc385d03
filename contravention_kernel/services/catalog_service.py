"""
CatalogService -- contravention types and training courses.

Seeds both catalogs from the active policy.  Seeding is idempotent by
name: existing rows are left as they are.
"""

from sqlalchemy import select

from contravention_kernel.domain.policy import ContraventionPolicy
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.contravention import ContraventionTypeModel
from contravention_kernel.models.training import CourseModel
from contravention_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService):

    def type_by_name(self, name: str) -> ContraventionTypeModel | None:
        return self.session.execute(
            select(ContraventionTypeModel).where(ContraventionTypeModel.name == name)
        ).scalar_one_or_none()

    def course_by_name(self, name: str) -> CourseModel | None:
        return self.session.execute(
            select(CourseModel).where(CourseModel.name == name)
        ).scalar_one_or_none()

    def list_types(self, active_only: bool = True) -> list[ContraventionTypeModel]:
        stmt = select(ContraventionTypeModel).order_by(ContraventionTypeModel.name)
        if active_only:
            stmt = stmt.where(ContraventionTypeModel.is_active.is_(True))
        return list(self.session.execute(stmt).scalars())

    def seed_from_policy(self, policy: ContraventionPolicy) -> tuple[int, int]:
        """Insert missing types and courses.  Returns (types_added, courses_added)."""
        types_added = 0
        for seed in policy.contravention_types:
            if self.type_by_name(seed.name) is not None:
                continue
            self.session.add(
                ContraventionTypeModel(
                    name=seed.name,
                    category=seed.category,
                    severity=seed.severity.value,
                    default_points=seed.default_points,
                    is_active=True,
                )
            )
            types_added += 1

        courses_added = 0
        for seed in policy.courses:
            if self.course_by_name(seed.name) is not None:
                continue
            self.session.add(
                CourseModel(
                    name=seed.name,
                    points_credit=seed.points_credit,
                    is_active=seed.is_active,
                )
            )
            courses_added += 1

        self.session.flush()
        logger.info(
            "catalog_seeded",
            extra={
                "policy_version": policy.version,
                "types_added": types_added,
                "courses_added": courses_added,
            },
        )
        return types_added, courses_added
