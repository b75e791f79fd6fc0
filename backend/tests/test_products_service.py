"""
Product numbering and product service tests.

Verifies:
- Product numbers are allocated 1, 2, 3, ...
- Deleting a product compacts the survivors to 1..N in creation order
- The counter follows compaction, so the next product gets N + 1
- Products with open handovers cannot be deleted
- Capability checks inside the service
"""

import pytest

from stockroom.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stockroom.models import HandOver, Product, SequenceCounter
from stockroom.services import handover_service, products_service, sequence_service

from conftest import make_product, reload


def _numbers(db_session):
    db_session.expire_all()
    return [
        (p.name, p.product_number)
        for p in db_session.query(Product).order_by(Product.created_at, Product.id)
    ]


def _create(admin, name, **extra):
    payload = {"name": name, "cost_price_cents": 100, "selling_price_cents": 150}
    payload.update(extra)
    return products_service.create_product(payload=payload, actor_user_id=admin.id)


class TestSequence:
    def test_allocates_consecutive_numbers(self, db_session):
        first = sequence_service.next_product_number()
        second = sequence_service.next_product_number()
        db_session.commit()
        assert (first, second) == (1, 2)

    def test_fresh_counter_starts_after_existing_numbers(self, db_session):
        db_session.add(Product(product_number=7, name="Legacy", cost_price_cents=1, selling_price_cents=1))
        db_session.commit()
        assert sequence_service.next_product_number() == 8

    def test_compaction_is_a_noop_when_dense(self, db_session):
        make_product(db_session, name="A")
        make_product(db_session, name="B")
        assert sequence_service.compact_product_numbers() == 0

    def test_compaction_fills_gaps(self, db_session):
        a = make_product(db_session, name="A")
        b = make_product(db_session, name="B")
        c = make_product(db_session, name="C")
        db_session.delete(b)
        db_session.flush()

        moved = sequence_service.compact_product_numbers()
        db_session.commit()

        assert moved == 1
        assert _numbers(db_session) == [("A", 1), ("C", 2)]
        counter = db_session.query(SequenceCounter).filter_by(name="product").one()
        assert counter.value == 2
        assert reload(Product, a.id).product_number == 1
        assert reload(Product, c.id).product_number == 2


class TestCreateProduct:
    def test_create_assigns_number_and_actor(self, db_session, admin):
        created = _create(admin, "Drill", stock_quantity=4, tags="tools, power")
        assert created["product_number"] == 1
        assert created["stock"]["quantity"] == 4
        assert created["tags"] == ["tools", "power"]
        assert created["created_by_user_id"] == admin.id
        assert created["price"]["currency"] == "PKR"

    def test_employee_cannot_create(self, db_session, employee):
        with pytest.raises(ForbiddenError):
            _create(employee, "Drill")

    def test_invalid_payload_allocates_no_number(self, db_session, admin):
        with pytest.raises(ValidationError):
            _create(admin, "Drill", unit="crates")
        assert _create(admin, "Saw")["product_number"] == 1


class TestUpdateProduct:
    def test_update_fields_and_stock(self, db_session, manager, product):
        updated = products_service.update_product(
            product_id=product.id,
            payload={"name": "Laptop Pro", "stock_quantity": 25, "location": "Shelf B"},
            actor_user_id=manager.id,
        )
        assert updated["name"] == "Laptop Pro"
        assert updated["stock"]["quantity"] == 25
        assert updated["stock"]["location"] == "Shelf B"
        assert updated["updated_by_user_id"] == manager.id

    def test_missing_product(self, db_session, manager):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id=999, payload={"name": "X"}, actor_user_id=manager.id)

    def test_employee_cannot_edit(self, db_session, employee, product):
        with pytest.raises(ForbiddenError):
            products_service.update_product(
                product_id=product.id, payload={"name": "X"}, actor_user_id=employee.id,
            )


class TestDeleteProduct:
    def test_delete_compacts_and_next_number_follows(self, db_session, admin):
        _create(admin, "A")
        b = _create(admin, "B")
        _create(admin, "C")

        deleted = products_service.delete_product(product_id=b["id"], actor_user_id=admin.id)
        assert deleted == {"id": b["id"], "product_number": 2, "name": "B"}
        assert _numbers(db_session) == [("A", 1), ("C", 2)]

        assert _create(admin, "D")["product_number"] == 3

    def test_manager_cannot_delete(self, db_session, manager, product):
        with pytest.raises(ForbiddenError):
            products_service.delete_product(product_id=product.id, actor_user_id=manager.id)

    def test_open_handover_blocks_delete(self, db_session, admin, employee, product):
        handover_service.create_direct_handover(
            product_id=product.id, employee_id=employee.id, quantity=1, issuer_id=admin.id,
        )
        with pytest.raises(ConflictError):
            products_service.delete_product(product_id=product.id, actor_user_id=admin.id)
        assert reload(Product, product.id) is not None

    def test_handover_opened_after_check_still_blocks_delete(self, db_session, admin, employee, product, monkeypatch):
        h = handover_service.create_handover_request(
            product_id=product.id, employee_id=employee.id, quantity=1, reason="Audit",
        )
        monkeypatch.setattr(products_service, "_open_handover_count", lambda product_id: 0)

        with pytest.raises(ConflictError):
            products_service.delete_product(product_id=product.id, actor_user_id=admin.id)

        assert reload(Product, product.id) is not None
        assert reload(HandOver, h.id).status == "pending"

    def test_closed_handovers_are_removed_with_product(self, db_session, admin, employee, product):
        h = handover_service.create_direct_handover(
            product_id=product.id, employee_id=employee.id, quantity=2, issuer_id=admin.id,
        )
        handover_service.mark_returned_by_manager(handover_id=h.id, manager_id=admin.id)

        products_service.delete_product(product_id=product.id, actor_user_id=admin.id)

        db_session.expire_all()
        assert db_session.query(HandOver).count() == 0
        assert db_session.query(Product).count() == 0


class TestListProducts:
    def test_search_and_pagination(self, db_session, admin):
        _create(admin, "Hammer", description="steel claw")
        _create(admin, "Screwdriver")
        _create(admin, "Sledge hammer")

        result = products_service.list_products(search="hammer")
        assert {p["name"] for p in result["products"]} == {"Hammer", "Sledge hammer"}
        assert result["pagination"]["total"] == 2

        by_number = products_service.list_products(search="2")
        assert [p["name"] for p in by_number["products"]] == ["Screwdriver"]

        page = products_service.list_products(page=2, limit=2)
        assert page["pagination"] == {"current": 2, "pages": 2, "total": 3, "limit": 2}
        assert len(page["products"]) == 1

    def test_status_filter_and_active_list(self, db_session, admin):
        _create(admin, "Old", status="discontinued")
        _create(admin, "New")
        assert [p["name"] for p in products_service.list_products(status="discontinued")["products"]] == ["Old"]
        assert [p["name"] for p in products_service.list_active_products()] == ["New"]
