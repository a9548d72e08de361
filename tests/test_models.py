from shedai.db.base import Base
from shedai.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())
    expected = {
        "users",
        "user_documents",
        "schedule_runs",
    }

    assert expected.issubset(table_names)


def test_user_documents_are_unique_per_collection() -> None:
    table = Base.metadata.tables["user_documents"]
    unique_sets = [
        {column.name for column in constraint.columns}
        for constraint in table.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    ]
    assert {"user_id", "collection"} in unique_sets
