import json

import pytest

from lockstats.core.table import SORT_ASC, SORT_DESC, TABLE_P_TOP, SqlTable


@pytest.fixture
def history_rows(add_history):
    add_history(
        {"classname": "delta", "taskid": 4, "duration": 4.0},
        {"classname": "alpha", "taskid": 1, "duration": 1.0},
        {"classname": "echo", "taskid": 5, "duration": 5.0},
        {"classname": "charlie", "taskid": 3, "duration": 3.0},
        {"classname": "bravo", "taskid": 2, "duration": 2.0},
    )


def make_table(database, params=None):
    table = SqlTable("history_test", database, params)
    table.define_columns(["taskid", "classname"])
    table.define_headers(["Task", "Class"])
    table.define_baseurl("/report")
    table.sortable(True, "taskid", SORT_ASC)
    table.set_sql("taskid, classname", "tool_lockstats_history", "1 = 1")
    return table


def classnames(table):
    return [row["classname"] for row in table.rawdata]


# ===== Sorting =====

def test_default_sort(database, history_rows):
    table = make_table(database)
    table.query_db(10)

    assert classnames(table) == ["alpha", "bravo", "charlie", "delta", "echo"]


def test_requested_sort_with_default_as_tiebreaker(database, history_rows):
    table = make_table(database, {"tsort": "classname", "tdir": "desc"})

    assert table.get_sql_sort() == "classname DESC, taskid ASC"
    table.query_db(10)
    assert classnames(table) == ["echo", "delta", "charlie", "bravo", "alpha"]


def test_unknown_sort_column_is_ignored(database, history_rows):
    table = make_table(database, {"tsort": "taskid; DROP TABLE tool_lockstats_history", "tdir": "desc"})

    assert table.get_sql_sort() == "taskid ASC"


def test_no_sorting_column(database):
    table = make_table(database, {"tsort": "classname"})
    table.no_sorting("classname")

    assert table.get_sort_columns() == [("taskid", SORT_ASC)]


def test_invalid_direction_uses_column_default(database):
    table = make_table(database, {"tsort": "taskid", "tdir": "sideways"})
    table.sortable(True, "taskid", SORT_DESC)

    assert table.get_sort_columns() == [("taskid", SORT_DESC)]


def test_not_sortable(database):
    table = make_table(database, {"tsort": "classname"})
    table.sortable(False)

    assert table.get_sql_sort() == ""


# ===== Paging =====

def test_paging(database, history_rows):
    table = make_table(database, {"page": "2"})
    output = table.out(2)

    assert classnames(table) == ["echo"]
    assert output.total == 5
    assert output.rows == 1
    assert '<span class="current-page">3</span>' in output.content
    assert ">Previous</a>" in output.content
    assert ">Next</a>" not in output.content


def test_explicit_count_sql_sets_total(database, history_rows):
    table = make_table(database)
    table.set_count_sql("SELECT 7")

    output = table.out(1)

    assert output.total == 7
    assert output.rows == 1
    assert '<span class="current-page">1</span>' in output.content
    assert ">7</a>" in output.content


def test_paging_bar_shows_window_of_pages(database, add_history):
    add_history(*({"classname": f"task_{i:03d}", "duration": 1.0} for i in range(100)))

    table = make_table(database, {"page": "50"})
    output = table.out(1)
    html = output.content

    assert '<span class="current-page">51</span>' in html
    # first and last pages stay reachable
    assert ">1</a>" in html
    assert ">100</a>" in html
    assert html.count('class="ellipsis"') == 2
    # pages far from the current one are left out
    assert ">10</a>" not in html
    assert ">90</a>" not in html
    paging = html[html.index('class="paging"'):]
    assert paging.count("<a ") <= 18 + 4


def test_page_out_of_range_is_clamped(database, history_rows):
    table = make_table(database, {"page": "99"})
    table.query_db(2)

    assert table.currpage == 2
    assert classnames(table) == ["echo"]


@pytest.mark.parametrize("page", ["abc", "-3", ""])
def test_bad_page_falls_back_to_first(database, history_rows, page):
    table = make_table(database, {"page": page})
    table.query_db(2)

    assert table.currpage == 0
    assert classnames(table) == ["alpha", "bravo"]


def test_no_paging_bar_for_single_page(database, history_rows):
    output = make_table(database).out(10)

    assert 'class="paging"' not in output.content


def test_unpaginated_returns_everything(database, history_rows):
    table = make_table(database)
    output = table.out(2, paginate=False)

    assert output.rows == 5


# ===== HTML =====

def test_cells_are_escaped_without_formatter(database, add_history):
    add_history({"classname": "<b>bold</b>", "duration": 1.0})

    output = make_table(database).out(10)

    assert "&lt;b&gt;bold&lt;/b&gt;" in output.content
    assert "<b>bold</b>" not in output.content


def test_formatter_output_is_not_escaped(database, history_rows):
    table = make_table(database)
    table.set_column_formatter("classname", lambda row: f"<em>{row['classname']}</em>")

    output = table.out(10)

    assert "<em>alpha</em>" in output.content


def test_sort_links_keep_baseurl_params(database, history_rows):
    table = make_table(database, {"tsort": "taskid", "tdir": "asc"})
    table.define_baseurl("/report?view=all")

    html = table.out(10).content

    assert 'href="/report?view=all&amp;tsort=taskid&amp;tdir=desc"' in html
    assert 'href="/report?view=all&amp;tsort=classname&amp;tdir=asc"' in html


def test_cell_classes(database, history_rows):
    html = make_table(database).out(10).content

    assert '<th class="header c0" scope="col">' in html
    assert '<td class="cell c1 lastcol">alpha</td>' in html


def test_hidden_columns(database, history_rows):
    html = make_table(database, {"thide": "classname"}).out(10).content

    assert 'title="Show Class"' in html
    assert '<td class="cell c1 lastcol"></td>' in html


def test_thide_ignored_when_not_collapsible(database, history_rows):
    table = make_table(database, {"thide": "classname"})
    table.collapsible(False)

    html = table.out(10).content

    assert '<td class="cell c1 lastcol">alpha</td>' in html
    assert 'class="collapse"' not in html


def test_empty_table(database):
    output = make_table(database).out(10)

    assert output.rows == 0
    assert "Nothing to display" in output.content
    assert "<table" not in output.content


def test_download_buttons_position(database, history_rows):
    table = make_table(database)
    table.is_downloadable(True)
    table.show_download_buttons_at([TABLE_P_TOP])

    html = table.out(10).content

    assert html.index('class="dataformatselector"') < html.index("<table")
    assert '<option value="excel">' in html


def test_columns_default_to_query_fields(database, history_rows):
    table = SqlTable("plain", database)
    table.set_sql("classname", "tool_lockstats_history", "taskid = :taskid", {"taskid": 3})

    output = table.out(10)

    assert table.columns == ["classname"]
    assert table.headers == ["classname"]
    assert "charlie" in output.content


# ===== Download =====

def test_download_param_ignored_unless_downloadable(database, history_rows):
    table = make_table(database, {"download": "csv"})

    assert table.is_downloading() == ""
    assert table.out(10).media_type.startswith("text/html")


def test_download_exports_all_rows(database, history_rows):
    table = make_table(database, {"download": "json", "page": "1"})
    table.is_downloadable(True)

    output = table.out(2)

    assert output.media_type == "application/json"
    assert output.total == 2
    records = json.loads(output.content)
    assert len(records) == 5
    assert records[0] == {"Task": 1, "Class": "alpha"}


def test_is_downloading_sets_filename(database, history_rows):
    table = make_table(database)
    table.is_downloadable(True)

    assert table.is_downloading("csv", "lockstats", "history") == "csv"

    output = table.out(10)
    assert output.filename == "lockstats.csv"


def test_query_without_sql_fails(database):
    table = SqlTable("nosql", database)

    with pytest.raises(RuntimeError):
        table.out(10)
