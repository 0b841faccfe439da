# marketplace/repositories/product_repo.py
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select

from marketplace.models.product import Product, ProductReview


class ProductRepository:
    """
    Data access layer for Product & ProductReview.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_sku(self, session: Session, sku: str) -> Product | None:
        return session.exec(select(Product).where(Product.sku == sku)).first()

    def _keyword_filter(self, stmt, keyword: str | None):
        if keyword:
            # autoescape: % and _ in the keyword match literally
            stmt = stmt.where(Product.name.icontains(keyword, autoescape=True))
        return stmt

    def count(self, session: Session, keyword: str | None = None) -> int:
        stmt = self._keyword_filter(select(func.count()).select_from(Product), keyword)
        return int(session.exec(stmt).one() or 0)

    def search(
        self,
        session: Session,
        keyword: str | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> list[Product]:
        stmt = self._keyword_filter(select(Product), keyword)
        stmt = stmt.order_by(Product.created_at, Product.id).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def top_rated(self, session: Session, limit: int = 3) -> list[Product]:
        stmt = (
            select(Product)
            .order_by(Product.average_rating.desc(), Product.created_at)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        for review in self.list_reviews(session, product.id):
            session.delete(review)
        session.flush()
        session.delete(product)
        session.commit()

    def decrement_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Atomically take `quantity` units out of stock.

        Single conditional UPDATE; returns False (and changes nothing) when
        fewer than `quantity` units are left. Does not commit.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock_on_hand >= quantity)
            .values(stock_on_hand=Product.stock_on_hand - quantity)
        )
        result = session.exec(stmt)
        return result.rowcount == 1

    # ----- Reviews -----

    def list_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductReview]:
        stmt = (
            select(ProductReview)
            .where(ProductReview.product_id == product_id)
            .order_by(ProductReview.created_at)
        )
        return list(session.exec(stmt).all())

    def get_review_by_user(
        self,
        session: Session,
        product_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> ProductReview | None:
        stmt = select(ProductReview).where(
            ProductReview.product_id == product_id,
            ProductReview.user_id == user_id,
        )
        return session.exec(stmt).first()

    def add_review(self, session: Session, review: ProductReview) -> ProductReview:
        """
        Stage a review without committing; the service recomputes the
        rating aggregate and commits both together.
        """
        session.add(review)
        session.flush()
        return review

    def rating_stats(self, session: Session, product_id: uuid.UUID) -> tuple[float, int]:
        """
        Return (mean rating, review count) for a product; (0.0, 0) if none.
        """
        stmt = select(
            func.avg(ProductReview.rating),
            func.count(ProductReview.id),
        ).where(ProductReview.product_id == product_id)
        avg, count = session.exec(stmt).one()
        return float(avg or 0.0), int(count or 0)
