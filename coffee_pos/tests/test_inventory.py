import pytest

from coffee_pos.services.inventory_service import DEFAULT_CATEGORIES, InventoryService


@pytest.fixture
def inventory():
    return InventoryService()


def _add(inventory, **overrides):
    data = {'name': 'Mocha', 'category': 'Coffee', 'price': 6.0, 'cost': 2.0,
            'stock': 20, 'low_stock_threshold': 5}
    data.update(overrides)
    return inventory.add_item(data)


def test_seed_only_when_empty(inventory):
    assert inventory.initialize_default_items() == 8
    assert inventory.initialize_default_items() == 0
    assert len(inventory.get_all_items()) == 8
    names = {i.name for i in inventory.get_all_items()}
    assert {'Americano', 'Latte', 'Croissant', 'Club Sandwich'} <= names


def test_default_categories(inventory):
    assert inventory.categories == DEFAULT_CATEGORIES


def test_add_item_registers_new_category(inventory):
    item_id = _add(inventory, category='Smoothies')
    assert item_id.startswith('item_')
    assert 'Smoothies' in inventory.categories
    # categoría repetida no se duplica
    _add(inventory, category='Smoothies')
    assert inventory.categories.count('Smoothies') == 1


def test_names_are_not_unique(inventory):
    a = _add(inventory)
    b = _add(inventory)
    assert a != b
    assert len(inventory.get_all_items()) == 2


def test_low_stock_membership_follows_stock_and_active(inventory):
    item_id = _add(inventory, stock=20, low_stock_threshold=5)
    assert inventory.low_stock_items == []

    inventory.update_stock(item_id, 5)
    assert [i.id for i in inventory.low_stock_items] == [item_id]

    inventory.update_item(item_id, {'is_active': False})
    assert inventory.low_stock_items == []

    inventory.update_item(item_id, {'is_active': True, 'low_stock_threshold': 2})
    assert inventory.low_stock_items == []


def test_update_stock_rejects_negative(inventory):
    item_id = _add(inventory, stock=10)
    assert inventory.update_stock(item_id, -1) is False
    assert inventory.get_item_by_id(item_id).stock == 10


def test_update_item_ignores_negative_stock_and_protected_fields(inventory):
    item_id = _add(inventory, stock=10)
    created = inventory.get_item_by_id(item_id).created_at
    inventory.update_item(item_id, {'stock': -4, 'name': 'Mocha Grande', 'id': 'hack', 'created_at': None})
    item = inventory.get_item_by_id(item_id)
    assert item.stock == 10
    assert item.name == 'Mocha Grande'
    assert item.created_at == created


def test_unknown_ids_are_silent_noops(inventory):
    _add(inventory)
    assert inventory.update_item('missing', {'name': 'x'}) is False
    assert inventory.update_stock('missing', 3) is False
    assert inventory.delete_item('missing') is False
    assert len(inventory.get_all_items()) == 1


def test_delete_removes_from_low_stock(inventory):
    item_id = _add(inventory, stock=1, low_stock_threshold=5)
    assert inventory.low_stock_items
    assert inventory.delete_item(item_id) is True
    assert inventory.low_stock_items == []


def test_offerable_items_filter(inventory):
    active = _add(inventory, name='Latte', category='Coffee', stock=3)
    _add(inventory, name='Old Brew', category='Coffee', stock=3, is_active=False)
    _add(inventory, name='Sold Out', category='Tea', stock=0)
    tea = _add(inventory, name='Chai', category='Tea', stock=2)

    assert {i.id for i in inventory.get_offerable_items()} == {active, tea}
    assert [i.id for i in inventory.get_offerable_items('Tea')] == [tea]


def test_search_and_category_queries(inventory):
    inventory.initialize_default_items()
    assert [i.name for i in inventory.search_items('muffin')] == ['Blueberry Muffin']
    assert {i.name for i in inventory.search_items('espresso', 'Coffee')} >= {'Espresso', 'Americano'}
    assert all(i.category == 'Tea' for i in inventory.get_items_by_category('Tea'))


def test_returned_items_are_copies(inventory):
    item_id = _add(inventory, stock=10)
    copy = inventory.get_item_by_id(item_id)
    copy.stock = 0
    assert inventory.get_item_by_id(item_id).stock == 10


def test_summary(inventory):
    _add(inventory, cost=2.0, stock=10, low_stock_threshold=5)
    _add(inventory, cost=1.5, stock=2, low_stock_threshold=5, is_active=False)
    summary = inventory.get_summary()
    assert summary['total_items'] == 2
    assert summary['active_items'] == 1
    assert summary['low_stock_count'] == 0
    assert summary['total_value'] == pytest.approx(23.0)
