"""Tests for the authorization policy: ownership, admin override and field filtering."""

import unittest

from workload_tracker.core.errors import ForbiddenError
from workload_tracker.repositories.workloads import WorkloadFilters
from workload_tracker.schemas.auth import CurrentUser
from workload_tracker.services import policy

ADMIN = CurrentUser(id=1, username="admin", name="Administrator", role="Admin")
JDOE = CurrentUser(id=2, username="jdoe", name="John Doe", role="User")
ADMIN_WORKLOAD = {"id": 10, "user_id": ADMIN.id, "name": "Budget review"}
JDOE_WORKLOAD = {"id": 11, "user_id": JDOE.id, "name": "Field survey"}


class TestWorkloadAccess(unittest.TestCase):
    """Workload ownership, listing scope and owner assignment."""

    def test_owner_and_admin_may_access(self) -> None:
        policy.ensure_can_access_workload(JDOE, JDOE_WORKLOAD, "access")
        policy.ensure_can_access_workload(ADMIN, JDOE_WORKLOAD, "delete")

    def test_other_user_is_forbidden_with_action_message(self) -> None:
        with self.assertRaises(ForbiddenError) as ctx:
            policy.ensure_can_access_workload(JDOE, ADMIN_WORKLOAD, "update")
        self.assertEqual(ctx.exception.message, "You can only update your own workloads")

    def test_listing_is_scoped_for_non_admins(self) -> None:
        requested = WorkloadFilters(user_id=ADMIN.id, status="New")
        scoped = policy.scope_workload_filters(JDOE, requested)
        self.assertEqual(scoped.user_id, JDOE.id)
        self.assertEqual(scoped.status, "New")
        self.assertIs(policy.scope_workload_filters(ADMIN, requested), requested)

    def test_statistics_owner(self) -> None:
        self.assertIsNone(policy.statistics_owner(ADMIN, None))
        self.assertEqual(policy.statistics_owner(ADMIN, 2), 2)
        self.assertEqual(policy.statistics_owner(JDOE, 1), JDOE.id)

    def test_create_forces_owner_for_non_admin(self) -> None:
        values = policy.prepare_workload_create(JDOE, {"user_id": ADMIN.id, "name": "X"})
        self.assertEqual(values["user_id"], JDOE.id)

    def test_create_lets_admin_assign_and_defaults_to_self(self) -> None:
        self.assertEqual(policy.prepare_workload_create(ADMIN, {"user_id": 2})["user_id"], 2)
        self.assertEqual(policy.prepare_workload_create(ADMIN, {"user_id": None})["user_id"], 1)

    def test_update_drops_owner_change_for_non_admin(self) -> None:
        changes = policy.prepare_workload_update(JDOE, {"user_id": 1, "status": "Completed"})
        self.assertEqual(changes, {"status": "Completed"})
        self.assertEqual(policy.prepare_workload_update(ADMIN, {"user_id": 2}), {"user_id": 2})


class TestUserAccess(unittest.TestCase):
    """User visibility, update allow-lists and delete rules."""

    def test_view_self_or_as_admin(self) -> None:
        policy.ensure_can_view_user(JDOE, JDOE.id)
        policy.ensure_can_view_user(ADMIN, JDOE.id)
        with self.assertRaises(ForbiddenError):
            policy.ensure_can_view_user(JDOE, ADMIN.id)

    def test_self_update_drops_privileged_fields(self) -> None:
        changes = policy.filter_user_update(
            JDOE, JDOE.id, {"name": "J. Doe", "role": "Admin", "username": "boss", "password": "x" * 8}
        )
        self.assertEqual(changes, {"name": "J. Doe"})

    def test_admin_update_keeps_all_fields(self) -> None:
        body = {"name": "J. Doe", "role": "Admin", "username": "boss", "password": "x" * 8}
        self.assertEqual(policy.filter_user_update(ADMIN, JDOE.id, body), body)

    def test_updating_someone_else_is_forbidden(self) -> None:
        with self.assertRaises(ForbiddenError) as ctx:
            policy.filter_user_update(JDOE, ADMIN.id, {"name": "Hacker"})
        self.assertEqual(ctx.exception.message, "You can only update your own profile")

    def test_profile_update_uses_self_fields_even_for_admin(self) -> None:
        changes = policy.filter_profile_update({"position": "Analyst", "role": "User"})
        self.assertEqual(changes, {"position": "Analyst"})

    def test_delete_rules(self) -> None:
        policy.ensure_can_delete_user(ADMIN, JDOE.id)
        with self.assertRaises(ForbiddenError) as ctx:
            policy.ensure_can_delete_user(ADMIN, ADMIN.id)
        self.assertEqual(ctx.exception.message, "You cannot delete your own account")
        with self.assertRaises(ForbiddenError):
            policy.ensure_can_delete_user(JDOE, ADMIN.id)


if __name__ == "__main__":
    unittest.main()
