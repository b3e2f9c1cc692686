"""
Tests for ODataQuerySpec and the query-string builder
"""

import pytest

from d365_odata_mcp.client import ODataQuerySpec, clamp_top, to_query_string


@pytest.mark.unit
class TestQueryString:
    def test_filter_select_top(self):
        spec = ODataQuerySpec(entity="accounts", filter="Status eq 'Open'", select=("Name", "Id"), top=10)

        assert to_query_string(spec) == "$filter=Status%20eq%20'Open'&$select=Name,Id&$top=10"

    def test_default_top_only(self):
        assert to_query_string(ODataQuerySpec(entity="accounts")) == "$top=50"

    def test_all_parameters_in_order(self):
        spec = ODataQuerySpec(
            entity="SalesOrderHeadersV2",
            filter="dataAreaId eq 'usmf'",
            select=("SalesOrderNumber",),
            orderby="SalesOrderNumber desc",
            top=5,
            skip=20,
            expand=("SalesOrderLines",),
            count=True,
        )

        assert to_query_string(spec) == (
            "$filter=dataAreaId%20eq%20'usmf'"
            "&$select=SalesOrderNumber"
            "&$orderby=SalesOrderNumber%20desc"
            "&$top=5"
            "&$skip=20"
            "&$expand=SalesOrderLines"
            "&$count=true"
        )

    def test_reserved_characters_are_encoded(self):
        spec = ODataQuerySpec(entity="accounts", filter="name eq 'A&B+C'")

        query = to_query_string(spec)

        assert "A%26B%2BC" in query
        assert query.count("&") == 1

    def test_zero_skip_is_omitted(self):
        assert "$skip" not in to_query_string(ODataQuerySpec(entity="accounts", skip=0))

    def test_cross_company_is_not_a_query_parameter(self):
        spec = ODataQuerySpec(entity="CustomersV3", cross_company=True)

        assert "cross" not in to_query_string(spec).lower()


@pytest.mark.unit
class TestQuerySpec:
    @pytest.mark.parametrize(
        "requested, expected",
        [(None, 50), (0, 1), (-5, 1), (1, 1), (500, 500), (1000, 1000), (5000, 1000)],
    )
    def test_top_is_clamped(self, requested, expected):
        assert clamp_top(requested) == expected
        if requested is not None:
            assert ODataQuerySpec(entity="accounts", top=requested).top == expected

    def test_empty_entity_rejected(self):
        with pytest.raises(ValueError):
            ODataQuerySpec(entity="  ")

    def test_negative_skip_rejected(self):
        with pytest.raises(ValueError):
            ODataQuerySpec(entity="accounts", skip=-1)

    def test_from_arguments_splits_comma_lists(self):
        spec = ODataQuerySpec.from_arguments(
            entity=" contacts ",
            filter="  ",
            select="fullname, emailaddress1 ,",
            expand="parentcustomerid_account",
            top=None,
        )

        assert spec.entity == "contacts"
        assert spec.filter is None
        assert spec.select == ("fullname", "emailaddress1")
        assert spec.expand == ("parentcustomerid_account",)
        assert spec.top == 50
