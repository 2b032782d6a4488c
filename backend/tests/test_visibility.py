from types import SimpleNamespace

import pytest

from peerreview.schemas import Principal
from peerreview.visibility import can_view, visible_to


OWNER = Principal(user_id="t1", role="teacher")


def _response(visibility, author="s1", target=None, owner="t1"):
	return SimpleNamespace(
		visibility=visibility,
		author_id=author,
		target_id=target,
		assessment=SimpleNamespace(owner_id=owner),
	)


@pytest.mark.parametrize(
	"viewer, expected",
	[
		(Principal(user_id="s1", role="student"), True),  # author
		(Principal(user_id="s2", role="student"), True),  # target
		(OWNER, True),
		(Principal(user_id="s3", role="student"), False),
		(Principal(user_id="t2", role="teacher"), False),
	],
)
def test_private_response_readers(viewer, expected):
	assert can_view(viewer, _response("private", target="s2"), "t1") is expected


def test_public_is_readable_by_anyone():
	stranger = Principal(user_id="x", role="student")
	assert can_view(stranger, _response("public"), "t1")


def test_owner_must_be_a_teacher():
	# A student whose id happens to match the owner gets no owner access
	student = Principal(user_id="t1", role="student")
	assert not can_view(student, _response("private"), "t1")


def test_untargeted_response_has_no_target_reader():
	viewer = Principal(user_id="s9", role="student")
	assert not can_view(viewer, _response("private", target=None), "t1")


def test_visible_to_keeps_order_and_filters():
	rows = [
		_response("public", author="s2"),
		_response("private", author="s2", target="s3"),
		_response("private", author="s1"),
		_response("private", author="s2", owner="t2"),
	]
	viewer = Principal(user_id="s1", role="student")
	assert visible_to(viewer, rows) == [rows[0], rows[2]]
	assert visible_to(OWNER, rows) == rows[:3]
