import unittest

from storecouch import views


class DesignPathTestCase(unittest.TestCase):

    def test_view_path(self):
        self.assertEqual('_design/prices/_view/usd',
                         views.DesignPath('prices/usd', '_view'))

    def test_leading_slash(self):
        self.assertEqual('_design/prices/_show/usd',
                         views.DesignPath('/prices/usd', '_show'))

    def test_split_on_first_slash(self):
        self.assertEqual('_design/prices/_view/usd/eur',
                         views.DesignPath('prices/usd/eur', '_view'))

    def test_incomplete_name(self):
        self.assertEqual('_design/prices/_view/',
                         views.DesignPath('prices', '_view'))


class EncodeOptionsTestCase(unittest.TestCase):

    def test_key_is_json_quoted(self):
        self.assertEqual('key=%22foo%22', views.EncodeOptions({'key': 'foo'}))

    def test_all_key_options(self):
        query = views.EncodeOptions({'startkey': ['a'], 'endkey': ['a', {}],
                                     'startkey_docid': 'x', 'keys': [1, 2]})
        self.assertEqual('&'.join(['startkey=%5B%22a%22%5D',
                                   'endkey=%5B%22a%22%2C%7B%7D%5D',
                                   'startkey_docid=%22x%22',
                                   'keys=%5B1%2C2%5D']), query)

    def test_other_values_as_is(self):
        query = views.EncodeOptions({'limit': 10, 'stale': 'update_after',
                                     'rev': '1-abc'})
        self.assertEqual('limit=10&stale=update_after&rev=1-abc', query)

    def test_booleans(self):
        query = views.EncodeOptions({'include_docs': True, 'reduce': False})
        self.assertEqual('include_docs=true&reduce=false', query)

    def test_values_are_escaped(self):
        self.assertEqual('since=now%20%26%20then',
                         views.EncodeOptions({'since': 'now & then'}))

    def test_empty(self):
        self.assertEqual('', views.EncodeOptions({}))


class KeyedRowsTestCase(unittest.TestCase):

    def test_no_rows(self):
        self.assertIsNone(views.KeyedRows([]))
        self.assertIsNone(views.KeyedRows(None))

    def test_no_usable_rows(self):
        self.assertEqual({}, views.KeyedRows([{'id': 'a', 'key': 'x'}]))

    def test_values_by_key(self):
        rows = [{'id': 'a', 'key': 'x', 'value': 1},
                {'id': 'b', 'key': 'y', 'value': {'n': 2}}]
        self.assertEqual({'x': 1, 'y': {'n': 2}}, views.KeyedRows(rows))

    def test_values_are_not_modified(self):
        rows = [{'id': 'b', 'key': 'y', 'value': {'n': 2}}]
        self.assertEqual({'y': {'n': 2}}, views.KeyedRows(rows))

    def test_colliding_keys_keep_last_row(self):
        # documented behaviour: rows sharing a key overwrite each other
        rows = [{'id': 'a', 'key': 'x', 'value': 'first'},
                {'id': 'b', 'key': 'x', 'value': 'second'}]
        self.assertEqual({'x': 'second'}, views.KeyedRows(rows))

    def test_docs_preferred(self):
        rows = [{'id': 'a', 'key': 'x', 'value': None,
                 'doc': {'_id': 'a', '_rev': '1-a'}}]
        self.assertEqual({'x': {'_id': 'a', '_rev': '1-a'}},
                         views.KeyedRows(rows))

    def test_counter_for_missing_keys(self):
        rows = [{'id': 'a', 'key': None, 'value': 'a'},
                {'id': 'b', 'key': 'x', 'value': 'b'},
                {'id': 'c', 'value': 'c'},
                {'id': 'd', 'key': 0, 'value': 'd'}]
        self.assertEqual({0: 'a', 'x': 'b', 2: 'c', 3: 'd'},
                         views.KeyedRows(rows))

    def test_skipped_rows_are_not_counted(self):
        rows = [{'key': None, 'value': None},
                {'key': None, 'value': 'a'}]
        self.assertEqual({0: 'a'}, views.KeyedRows(rows))

    def test_nested_keys(self):
        rows = [{'key': ['2012', '01', 'a'], 'value': 1},
                {'key': ['2012', '01', 'b'], 'value': 2},
                {'key': ['2012', '02', 'a'], 'value': 3},
                {'key': ['2013'], 'value': 4}]
        self.assertEqual({'2012': {'01': {'a': 1, 'b': 2}, '02': {'a': 3}},
                          '2013': 4}, views.KeyedRows(rows))

    def test_nested_colliding_keys_keep_last_row(self):
        rows = [{'key': ['a', 'b'], 'value': 1},
                {'key': ['a', 'b'], 'value': 2}]
        self.assertEqual({'a': {'b': 2}}, views.KeyedRows(rows))

    def test_object_keys(self):
        rows = [{'key': {'a': 1}, 'value': 1},
                {'key': ['x', {'b': 2}], 'value': 2}]
        self.assertEqual({'{"a":1}': 1, 'x': {'{"b":2}': 2}},
                         views.KeyedRows(rows))


class InsertNestedTestCase(unittest.TestCase):

    def test_creates_levels(self):
        self.assertEqual({'a': {'b': {'c': 1}}},
                         views.InsertNested({}, ['a', 'b', 'c'], 1))

    def test_single_key(self):
        self.assertEqual({'a': 1}, views.InsertNested({}, ['a'], 1))

    def test_keeps_siblings(self):
        result = {'a': {'x': 1}}
        views.InsertNested(result, ['a', 'y'], 2)
        self.assertEqual({'a': {'x': 1, 'y': 2}}, result)

    def test_replaces_leaf_with_level(self):
        self.assertEqual({'a': {'b': 2}},
                         views.InsertNested({'a': 1}, ['a', 'b'], 2))


class ArrayRowsTestCase(unittest.TestCase):

    def test_reduce_rows(self):
        rows = [{'key': 'b', 'value': 2},
                {'key': 'a', 'value': 1},
                {'key': 'b', 'value': 3}]
        self.assertEqual(rows, views.ArrayRows(rows))

    def test_object_values_get_ids(self):
        rows = [{'id': 'a', 'key': 'x', 'value': {'n': 1}},
                {'id': 'b', 'key': 'x', 'value': {'n': 2}}]
        self.assertEqual([{'n': 1, 'id': 'a'}, {'n': 2, 'id': 'b'}],
                         views.ArrayRows(rows))

    def test_docs(self):
        rows = [{'id': 'a', 'key': 'x', 'value': {'n': 1},
                 'doc': {'_id': 'a', 'n': 1}}]
        self.assertEqual([{'_id': 'a', 'n': 1}], views.ArrayRows(rows))

    def test_rows_without_value(self):
        rows = [{'id': 'a', 'key': 'x'},
                {'id': 'b', 'key': 'y', 'value': None},
                {'key': 'z', 'value': 3}]
        self.assertEqual([{'key': 'z', 'value': 3}], views.ArrayRows(rows))

    def test_empty(self):
        self.assertEqual([], views.ArrayRows([]))


class PostedRowsTestCase(unittest.TestCase):

    def test_ids_injected(self):
        rows = [{'id': 'a', 'key': 'ac', 'value': {'price': 1}},
                {'id': 'b', 'key': 'ad', 'value': {'price': 2}}]
        self.assertEqual({'ac': {'price': 1, 'id': 'a'},
                          'ad': {'price': 2, 'id': 'b'}},
                         views.PostedRows(rows))

    def test_docs_ignored(self):
        rows = [{'id': 'a', 'key': 'ac', 'value': {'price': 1},
                 'doc': {'_id': 'a'}}]
        self.assertEqual({'ac': {'price': 1, 'id': 'a'}},
                         views.PostedRows(rows))

    def test_missing_keys_overwrite(self):
        rows = [{'id': 'a', 'value': 1}, {'id': 'b', 'value': 2}]
        self.assertEqual({None: 2}, views.PostedRows(rows))

    def test_skips_missing_values(self):
        rows = [{'id': 'a', 'key': 'ac', 'value': None}]
        self.assertEqual({}, views.PostedRows(rows))


class RowTestCase(unittest.TestCase):

    def test_accessors(self):
        row = views.Row(id='a', key=['x'], value=1)
        self.assertEqual(('a', ['x'], 1, None),
                         (row.id, row.key, row.value, row.doc))
        self.assertEqual("<Row id='a', key=['x'], value=1>", repr(row))


if __name__ == '__main__':
    unittest.main()
