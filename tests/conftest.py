import pytest


def _unit(title="Polymorphism with Functions in Go", date="2020-07-17", body="Some prose.\n", **meta):
    lines = ["---"]
    if title is not None:
        lines.append(f'title: "{title}"')
    if date is not None:
        lines.append(f"date: {date}")
    for key, value in meta.items():
        lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@pytest.fixture
def make_unit():
    return _unit
