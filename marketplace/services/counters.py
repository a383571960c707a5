from sqlalchemy import case
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import InstrumentedAttribute


def adjust(db: Session, column: InstrumentedAttribute, row_id, delta: int) -> int:
    """Atomically add ``delta`` to a counter column, never going below zero.

    Runs as a single UPDATE so concurrent callers cannot lose each other's
    changes. Returns the number of rows matched.
    """
    if delta == 0:
        return 0

    model = column.class_
    new_value = column + delta
    if delta < 0:
        new_value = case((new_value < 0, 0), else_=new_value)

    return (
        db.query(model)
        .filter(model.id == row_id)
        .update({column: new_value}, synchronize_session=False)
    )


def increment(db: Session, column: InstrumentedAttribute, row_id) -> int:
    return adjust(db, column, row_id, 1)


def decrement(db: Session, column: InstrumentedAttribute, row_id) -> int:
    return adjust(db, column, row_id, -1)
