from tests.listing.base import *  # noqa: F401,F403

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from grid_listing.models.contact import Contact
from grid_listing.services.listing.adapter import BLANK_VALUE, ListingConfigurationError, TableListingAdapter
from grid_listing.services.listing.adapters.accounts import ACCOUNTS_LISTING
from grid_listing.services.listing.adapters.contacts import CONTACTS_LISTING
from grid_listing.services.listing.engine import MAX_ROW_OFFSET, get_records


# Same account configuration without the rating picklist, so every facet uses grouped counts.
PLAIN_ACCOUNTS = TableListingAdapter(
    table=ACCOUNTS_LISTING.table,
    fields=ACCOUNTS_LISTING.fields,
    default_order_by=ACCOUNTS_LISTING.default_order_by,
    static_filter=ACCOUNTS_LISTING.static_filter,
    filterable=ACCOUNTS_LISTING.filterable,
    searchable=ACCOUNTS_LISTING.searchable,
    field_map=ACCOUNTS_LISTING.field_map,
)


def _options(response, column: str) -> dict[str, tuple[int, bool]]:
    return {option.value: (option.count, option.selected) for option in response.filter_options[column]}


class ListingEnginePaginationTests(ListingDbBase):
    def test_last_partial_page_of_unfiltered_listing(self):
        response = get_records(self._request(page_size=10, current_page=4), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual(len(response.records), 7)
        self.assertEqual(response.total_records, ACTIVE_ACCOUNTS)
        self.assertEqual(response.total_filtered_records, ACTIVE_ACCOUNTS)

    def test_offset_is_page_size_times_previous_pages(self):
        store = RecordingStore(self.db)
        get_records(self._request(page_size=10, current_page=3), ACCOUNTS_LISTING, store)
        kind, sql = store.statements[0]
        self.assertEqual(kind, "rows")
        self.assertIn("LIMIT 10 OFFSET 20", sql)

    def test_pages_cover_every_record_once(self):
        seen = []
        for page in range(1, 6):
            response = get_records(self._request(page_size=8, current_page=page), ACCOUNTS_LISTING, SqlRecordStore(self.db))
            seen.extend(record["id"] for record in response.records)
        self.assertEqual(len(seen), ACTIVE_ACCOUNTS)
        self.assertEqual(len(set(seen)), ACTIVE_ACCOUNTS)

    def test_page_past_the_end_is_empty(self):
        response = get_records(self._request(page_size=10, current_page=9), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual(response.records, [])
        self.assertEqual(response.total_records, ACTIVE_ACCOUNTS)

    def test_deleted_accounts_never_counted(self):
        response = get_records(self._request(page_size=100), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        names = {record["name"] for record in response.records}
        self.assertFalse(any(name.startswith("Deleted") for name in names))

    def test_unfiltered_listing_issues_single_count(self):
        store = RecordingStore(self.db)
        get_records(self._request(), PLAIN_ACCOUNTS, store)
        self.assertEqual(store.kinds().count("count"), 1)
        self.assertEqual(store.kinds().count("groups"), len(PLAIN_ACCOUNTS.filterable))


class ListingEngineFilterTests(ListingDbBase):
    def test_column_filter_narrows_filtered_count_only(self):
        response = get_records(
            self._request(active_filters={"type": "Customer"}), ACCOUNTS_LISTING, SqlRecordStore(self.db)
        )
        self.assertEqual(response.total_records, ACTIVE_ACCOUNTS)
        self.assertEqual(response.total_filtered_records, CUSTOMER_ACCOUNTS)
        self.assertEqual(len(response.records), 10)
        self.assertTrue(all(record["type"] == "Customer" for record in response.records))
        self.assertEqual(_options(response, "type")["Customer"], (CUSTOMER_ACCOUNTS, True))

    def test_selected_column_hides_sibling_values_in_own_facet(self):
        response = get_records(
            self._request(active_filters={"type": "Customer"}), PLAIN_ACCOUNTS, SqlRecordStore(self.db)
        )
        self.assertEqual(list(_options(response, "type")), ["Customer"])
        # Other facets are narrowed to the filtered rows.
        self.assertEqual(sum(count for count, _ in _options(response, "industry").values()), CUSTOMER_ACCOUNTS)

    def test_empty_filter_value_is_ignored(self):
        response = get_records(self._request(active_filters={"type": ""}), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual(response.total_filtered_records, ACTIVE_ACCOUNTS)
        self.assertEqual(response.active_filters, {})

    def test_blank_filter_matches_null_and_empty_values(self):
        response = get_records(
            self._request(active_filters={"type": BLANK_VALUE}), ACCOUNTS_LISTING, SqlRecordStore(self.db)
        )
        self.assertEqual(response.total_filtered_records, 3)
        self.assertTrue(all(not record["type"] for record in response.records))
        self.assertEqual(_options(response, "type"), {BLANK_VALUE: (3, True)})

    def test_whitespace_only_value_is_blank_for_facets_and_filter(self):
        self.db.execute(text("UPDATE accounts SET type = '   ' WHERE name = 'Account 05'"))
        self.db.commit()
        unfiltered = get_records(self._request(), PLAIN_ACCOUNTS, SqlRecordStore(self.db))
        self.assertEqual(_options(unfiltered, "type")[BLANK_VALUE], (4, False))

        filtered = get_records(
            self._request(page_size=50, active_filters={"type": BLANK_VALUE}), PLAIN_ACCOUNTS, SqlRecordStore(self.db)
        )
        self.assertEqual(filtered.total_filtered_records, 4)
        self.assertEqual(len(filtered.records), 4)
        self.assertIn("Account 05", {record["name"] for record in filtered.records})
        self.assertEqual(_options(filtered, "type"), {BLANK_VALUE: (4, True)})

    def test_facets_without_filters_sum_to_total(self):
        response = get_records(self._request(), PLAIN_ACCOUNTS, SqlRecordStore(self.db))
        type_options = _options(response, "type")
        self.assertEqual(
            type_options,
            {
                BLANK_VALUE: (3, False),
                "Customer": (12, False),
                "Partner": (12, False),
                "Prospect": (10, False),
            },
        )
        for column in PLAIN_ACCOUNTS.filterable:
            total = sum(count for count, _ in _options(response, column).values())
            self.assertEqual(total, response.total_records)

    def test_facet_options_sorted_with_blank_first(self):
        response = get_records(self._request(), PLAIN_ACCOUNTS, SqlRecordStore(self.db))
        values = [option.value for option in response.filter_options["type"]]
        self.assertEqual(values, [BLANK_VALUE, "Customer", "Partner", "Prospect"])
        self.assertEqual(response.filter_options["type"][1].label, "Customer (12)")

    def test_rating_picklist_lists_values_without_rows(self):
        response = get_records(
            self._request(active_filters={"rating": "Hot"}), ACCOUNTS_LISTING, SqlRecordStore(self.db)
        )
        self.assertEqual(
            _options(response, "rating"),
            {"Cold": (0, False), "Hot": (19, True), "Warm": (0, False)},
        )

    def test_hidden_filter_scopes_total_and_filtered_counts(self):
        with self.SessionLocal() as db:
            account_ids = [row[0] for row in db.execute(text("SELECT id FROM accounts ORDER BY name")).all()]
            db.add_all(
                [
                    Contact(account_id=account_ids[0], first_name="Ann", last_name="Lee", title="CEO", lead_source="Web"),
                    Contact(account_id=account_ids[0], first_name="Bob", last_name="Ray", title="CTO", lead_source=None),
                    Contact(account_id=account_ids[1], first_name="Cid", last_name="Moe", title="CEO", lead_source="Web"),
                ]
            )
            db.commit()
        response = get_records(
            self._request(hidden_filters={"account_id": account_ids[0]}, active_filters={"title": "CEO"}),
            CONTACTS_LISTING,
            SqlRecordStore(self.db),
        )
        self.assertEqual(response.total_records, 2)
        self.assertEqual(response.total_filtered_records, 1)
        self.assertEqual(response.records[0]["full_name"], "Ann Lee")
        self.assertEqual(_options(response, "lead_source"), {"Web": (1, False)})

    def test_filter_on_unknown_column_is_rejected(self):
        with self.assertRaises(HTTPException) as ctx:
            get_records(self._request(active_filters={"password": "x"}), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual(ctx.exception.status_code, 400)


class ListingEngineSearchTests(ListingDbBase):
    def test_search_matches_any_searchable_column(self):
        response = get_records(self._request(search_term="harbor"), PLAIN_ACCOUNTS, SqlRecordStore(self.db))
        self.assertEqual(response.total_records, ACTIVE_ACCOUNTS)
        self.assertEqual(response.total_filtered_records, HARBOR_MATCHES)
        self.assertEqual(len(response.records), HARBOR_MATCHES)
        self.assertEqual(
            _options(response, "type"),
            {"Customer": (1, False), "Partner": (2, False), "Prospect": (2, False)},
        )

    def test_search_combines_with_column_filter(self):
        response = get_records(
            self._request(search_term="  HARBOR ", active_filters={"type": "Customer"}),
            ACCOUNTS_LISTING,
            SqlRecordStore(self.db),
        )
        self.assertEqual(response.total_filtered_records, 1)
        self.assertEqual(response.records[0]["name"], "Harbor Foods")

    def test_blank_search_term_is_not_a_filter(self):
        store = RecordingStore(self.db)
        response = get_records(self._request(search_term="   "), PLAIN_ACCOUNTS, store)
        self.assertEqual(response.total_filtered_records, ACTIVE_ACCOUNTS)
        self.assertEqual(store.kinds().count("count"), 1)

    def test_like_wildcards_in_search_term_are_literal(self):
        response = get_records(self._request(search_term="%"), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual(response.total_filtered_records, 0)
        self.assertEqual(response.records, [])


class ListingEngineSortTests(ListingDbBase):
    def test_ascending_sort_puts_nulls_first(self):
        response = get_records(
            self._request(page_size=50, sorted_by="revenue", sorted_direction="ASC"),
            ACCOUNTS_LISTING,
            SqlRecordStore(self.db),
        )
        revenues = [record["revenue"] for record in response.records]
        nulls = len(NULL_REVENUE_INDEXES)
        self.assertEqual(revenues[:nulls], [None] * nulls)
        self.assertEqual(revenues[nulls:], sorted(revenues[nulls:]))
        # Default ordering breaks ties between equal sort keys.
        names = [record["name"] for record in response.records[:nulls]]
        self.assertEqual(names, sorted(names))
        self.assertEqual(response.sorted_direction, "asc")

    def test_descending_sort_puts_nulls_last(self):
        response = get_records(
            self._request(page_size=50, sorted_by="revenue", sorted_direction="desc"),
            ACCOUNTS_LISTING,
            SqlRecordStore(self.db),
        )
        revenues = [record["revenue"] for record in response.records]
        nulls = len(NULL_REVENUE_INDEXES)
        self.assertEqual(revenues[-nulls:], [None] * nulls)
        self.assertEqual(revenues[:-nulls], sorted(revenues[:-nulls], reverse=True))

    def test_direction_other_than_asc_means_descending(self):
        store = RecordingStore(self.db)
        response = get_records(self._request(sorted_by="name", sorted_direction="sideways"), ACCOUNTS_LISTING, store)
        self.assertIn(
            "ORDER BY accounts.name DESC NULLS LAST, accounts.name ASC, accounts.id ASC", store.statements[0][1]
        )
        self.assertEqual(response.sorted_direction, "desc")

    def test_blank_sort_column_echoes_no_sort(self):
        store = RecordingStore(self.db)
        response = get_records(self._request(sorted_by="   ", sorted_direction="asc"), ACCOUNTS_LISTING, store)
        self.assertIsNone(response.sorted_by)
        self.assertIsNone(response.sorted_direction)
        self.assertIn("ORDER BY accounts.name ASC, accounts.id ASC", store.statements[0][1])

    def test_default_order_used_without_sort(self):
        response = get_records(self._request(page_size=3), ACCOUNTS_LISTING, SqlRecordStore(self.db))
        self.assertEqual([record["name"] for record in response.records], ["Account 01", "Account 02", "Account 03"])

    def test_unknown_sort_column_is_rejected(self):
        store = RecordingStore(self.db)
        with self.assertRaises(HTTPException) as ctx:
            get_records(self._request(sorted_by="is_deleted"), ACCOUNTS_LISTING, store)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(store.statements, [])


class ListingEngineErrorTests(ListingDbBase):
    def test_invalid_page_size_rejected_before_querying(self):
        store = RecordingStore(self.db)
        for page_size, current_page in ((0, 1), (10, 0), (100000, 1)):
            request = ListingRequest.model_construct(page_size=page_size, current_page=current_page)
            with self.assertRaises(HTTPException) as ctx:
                get_records(request, ACCOUNTS_LISTING, store)
            self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(store.statements, [])

    def test_page_number_overflowing_offset_rejected(self):
        store = RecordingStore(self.db)
        with self.assertRaises(HTTPException) as ctx:
            get_records(self._request(page_size=10, current_page=10**18), ACCOUNTS_LISTING, store)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(store.statements, [])

    def test_largest_representable_offset_is_accepted(self):
        response = get_records(
            self._request(page_size=1, current_page=MAX_ROW_OFFSET + 1), ACCOUNTS_LISTING, SqlRecordStore(self.db)
        )
        self.assertEqual(response.records, [])
        self.assertEqual(response.total_records, ACTIVE_ACCOUNTS)

    def test_adapter_without_fields_is_configuration_error(self):
        store = RecordingStore(self.db)
        with self.assertRaises(ListingConfigurationError):
            get_records(self._request(), TableListingAdapter(table="accounts", fields=()), store)
        with self.assertRaises(ListingConfigurationError):
            get_records(self._request(), TableListingAdapter(table="", fields=("id",)), store)
        self.assertEqual(store.statements, [])

    def test_facet_failure_fails_whole_request(self):
        store = RecordingStore(self.db, fail_on="groups")
        with self.assertRaises(OperationalError):
            get_records(self._request(), PLAIN_ACCOUNTS, store)
        self.assertEqual(store.kinds()[:2], ["rows", "count"])


if __name__ == "__main__":
    unittest.main()
