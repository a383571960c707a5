from sqlalchemy import Column, Float, Integer


class RatingSummaryMixin:
    """Derived review summary columns shared by every review target.

    Written only by RatingAggregator: ``rating_sum`` and ``total_reviews`` move
    together in one UPDATE and ``rating`` is their quotient (0.0 when empty).
    """

    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    rating_sum = Column(Integer, default=0, nullable=False)
