import threading

from app.models.user import UserRole
from app.services.event_distributor import EventDistributor, EventKind, NotificationEvent, RecipientScope
from helpers import RecordingChannel


def _event(*scopes: RecipientScope, kind: EventKind = EventKind.allocation_updated) -> NotificationEvent:
    return NotificationEvent(kind=kind, scopes=scopes, payload={"note": "hello"}, assignment_id="duty-1")


def test_register_joins_personal_and_role_channels():
    distributor = EventDistributor()
    channel = RecordingChannel()

    keys = distributor.register("u-1", [UserRole.hod, "hod"], channel, department="CSE")

    assert keys == ["user:u-1", "role:hod:CSE"]
    assert distributor.connection_count("u-1") == 1


def test_department_heads_only_join_their_department():
    distributor = EventDistributor()
    cse, mech, unassigned = RecordingChannel(), RecordingChannel(), RecordingChannel()
    distributor.register("hod-cse", [UserRole.hod], cse, department="CSE")
    distributor.register("hod-mech", [UserRole.hod], mech, department="MECH")

    assert distributor.register("hod-none", [UserRole.hod], unassigned) == ["user:hod-none"]

    delivered = distributor.publish(_event(RecipientScope.department_heads("CSE")))

    assert delivered == 1
    assert cse.events() == ["allocation_updated"]
    assert mech.messages == []
    assert unassigned.messages == []
    assert distributor.channels_for([RecipientScope.role(UserRole.hod)]) == []


def test_user_scope_reaches_every_device_of_that_user_only():
    distributor = EventDistributor()
    phone, laptop, other = RecordingChannel(), RecordingChannel(), RecordingChannel()
    distributor.register("u-1", [UserRole.faculty], phone)
    distributor.register("u-1", [UserRole.faculty], laptop)
    distributor.register("u-2", [UserRole.faculty], other)

    delivered = distributor.publish(_event(RecipientScope.user("u-1")))

    assert delivered == 2
    assert phone.events() == laptop.events() == ["allocation_updated"]
    assert other.messages == []
    message = phone.messages[0]
    assert message["assignment_id"] == "duty-1"
    assert message["data"] == {"note": "hello"}
    assert "emitted_at" in message


def test_overlapping_scopes_deliver_once_per_channel():
    distributor = EventDistributor()
    admin = RecordingChannel()
    hod = RecordingChannel()
    distributor.register("admin-1", [UserRole.admin], admin)
    distributor.register("hod-1", [UserRole.hod], hod, department="CSE")

    delivered = distributor.publish(
        _event(
            RecipientScope.user("admin-1"),
            RecipientScope.role(UserRole.admin),
            RecipientScope.department_heads("CSE"),
            kind=EventKind.replacement_applied,
        )
    )

    assert delivered == 2
    assert admin.events() == ["replacement_applied"]
    assert hod.events() == ["replacement_applied"]


def test_no_recipients_is_not_an_error():
    distributor = EventDistributor()
    assert distributor.publish(_event(RecipientScope.user("nobody"))) == 0


def test_rejecting_channel_is_dropped():
    distributor = EventDistributor()
    gone = RecordingChannel(accept=False)
    live = RecordingChannel()
    distributor.register("u-1", [UserRole.faculty], gone)
    distributor.register("u-1", [UserRole.faculty], live)

    assert distributor.publish(_event(RecipientScope.user("u-1"))) == 1
    assert distributor.connection_count("u-1") == 1
    assert distributor.channels_for([RecipientScope.role(UserRole.faculty)]) == [live]


def test_unregister_removes_all_memberships():
    distributor = EventDistributor()
    channel = RecordingChannel()
    distributor.register("u-1", [UserRole.admin], channel)

    distributor.unregister(channel)
    distributor.unregister(channel)

    assert distributor.channel_count() == 0
    assert distributor.publish(_event(RecipientScope.role(UserRole.admin))) == 0


def test_sequence_numbers_increase_per_publish():
    distributor = EventDistributor()
    channel = RecordingChannel()
    distributor.register("u-1", [], channel)

    for _ in range(3):
        distributor.publish(_event(RecipientScope.user("u-1")))

    assert [item["sequence"] for item in channel.messages] == [1, 2, 3]


def test_concurrent_connect_and_disconnect_leaves_consistent_registry():
    distributor = EventDistributor()
    survivors = [RecordingChannel() for _ in range(20)]
    for index, channel in enumerate(survivors):
        distributor.register(f"keep-{index}", [UserRole.faculty], channel)

    def churn(worker: int) -> None:
        for step in range(200):
            channel = RecordingChannel()
            distributor.register(f"churn-{worker}-{step % 5}", [UserRole.faculty, UserRole.hod], channel)
            distributor.publish(_event(RecipientScope.role(UserRole.faculty)))
            distributor.unregister(channel)

    threads = [threading.Thread(target=churn, args=(worker,)) for worker in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert distributor.channel_count() == len(survivors)
    assert distributor.channels_for([RecipientScope.role(UserRole.hod)]) == []
    assert len(distributor.channels_for([RecipientScope.role(UserRole.faculty)])) == len(survivors)
    assert len(survivors[0].messages) == 8 * 200
    assert len({item["sequence"] for item in survivors[0].messages}) == 8 * 200
