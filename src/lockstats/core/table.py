import html
import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel

from lockstats.core import dataformat
from lockstats.logger import logger
from lockstats.storage.database import Database

SORT_ASC = "ASC"
SORT_DESC = "DESC"

TABLE_P_TOP = 1
TABLE_P_BOTTOM = 2

# Request parameters that make up the table's URL state
URL_STATE_PARAMS = ("tsort", "tdir", "thide", "page")

# Most page links shown in the paging bar, not counting first/last
PAGING_MAXDISPLAY = 18


class SqlFragment(BaseModel):
    fields: str
    from_: str
    where: str
    params: Dict[str, Any] = {}


class TableOutput(BaseModel):
    content: Union[str, bytes]
    media_type: str
    filename: Optional[str] = None
    # Grand total for HTML, the caller supplied total for downloads
    total: int
    rows: int


class SqlTable:
    """
    Sortable, pageable, downloadable grid over a raw SQL query.

    The owner configures columns, headers and the query, registers per-column
    formatters, then calls out(). Sort, page, hidden columns and the download
    format are read from the request parameters handed to the constructor.
    """

    def __init__(self, uniqueid: str, database: Database, params: Optional[Mapping[str, Any]] = None):
        self.uniqueid = uniqueid
        self.database = database
        self.params: Dict[str, Any] = dict(params or {})

        self.columns: List[str] = []
        self.headers: List[str] = []
        self.baseurl = ""
        self.attributes: Dict[str, str] = {"class": "generaltable"}
        self.formatters: Dict[str, Callable[[Mapping[str, Any]], Any]] = {}

        self.is_sortable = False
        self.sort_default_column: Optional[str] = None
        self.sort_default_order = SORT_ASC
        self.column_nosort: set = set()

        self.is_collapsible = True
        self.downloadable = False
        self.download_buttons_at: List[int] = [TABLE_P_TOP]
        self.download = str(self.params.get("download") or "")
        self.filename = uniqueid
        self.sheettitle = uniqueid

        self.sql: Optional[SqlFragment] = None
        self.countsql: Optional[str] = None
        self.countparams: Dict[str, Any] = {}

        self.rawdata: List[Dict[str, Any]] = []
        self.pagesize = 0
        self.currpage = 0
        self.totalrows = 0

    # ===== Configuration =====

    def define_columns(self, columns: Iterable[str]):
        self.columns = list(columns)

    def define_headers(self, headers: Iterable[str]):
        self.headers = list(headers)

    def define_baseurl(self, url: str):
        self.baseurl = str(url)

    def set_attribute(self, name: str, value: str):
        self.attributes[name] = value

    def sortable(self, enabled: bool, default_column: Optional[str] = None, default_order: str = SORT_ASC):
        self.is_sortable = enabled
        self.sort_default_column = default_column
        self.sort_default_order = default_order

    def no_sorting(self, column: str):
        self.column_nosort.add(column)

    def collapsible(self, enabled: bool):
        self.is_collapsible = enabled

    def is_downloadable(self, downloadable: Optional[bool] = None) -> bool:
        if downloadable is not None:
            self.downloadable = downloadable
        return self.downloadable

    def show_download_buttons_at(self, positions: Iterable[int]):
        self.download_buttons_at = list(positions)

    def is_downloading(
        self,
        download: Optional[str] = None,
        filename: Optional[str] = None,
        sheettitle: Optional[str] = None,
    ) -> str:
        """
        Set and/or return the active download format, "" when rendering HTML.
        """
        if download is not None:
            self.download = download
        if filename:
            self.filename = filename
        if sheettitle:
            self.sheettitle = sheettitle

        if not self.downloadable:
            return ""
        return self.download

    def set_sql(self, fields: str, from_: str, where: str, params: Optional[Dict[str, Any]] = None):
        self.sql = SqlFragment(fields=fields, from_=from_, where=where, params=params or {})

    def set_count_sql(self, sql: str, params: Optional[Dict[str, Any]] = None):
        self.countsql = sql
        self.countparams = params or {}

    def set_column_formatter(self, column: str, formatter: Callable[[Mapping[str, Any]], Any]):
        self.formatters[column] = formatter

    # ===== Request state =====

    def get_sort_columns(self) -> List[Tuple[str, str]]:
        if not self.is_sortable:
            return []

        sorts: List[Tuple[str, str]] = []
        tsort = self.params.get("tsort")
        if tsort in self.columns and tsort not in self.column_nosort:
            tdir = str(self.params.get("tdir") or "").upper()
            if tdir not in (SORT_ASC, SORT_DESC):
                tdir = self.sort_default_order if tsort == self.sort_default_column else SORT_ASC
            sorts.append((tsort, tdir))

        default = self.sort_default_column
        if default and default in self.columns and all(column != default for column, _ in sorts):
            sorts.append((default, self.sort_default_order))

        return sorts

    def get_sql_sort(self) -> str:
        # Columns come from self.columns only, never straight from the request
        return ", ".join(f"{column} {order}" for column, order in self.get_sort_columns())

    def get_hidden_columns(self) -> List[str]:
        if not self.is_collapsible:
            return []
        thide = str(self.params.get("thide") or "")
        return [column for column in thide.split(",") if column in self.columns]

    def set_pagesize(self, pagesize: int, total: int):
        self.pagesize = pagesize
        self.totalrows = total

        try:
            page = int(self.params.get("page") or 0)
        except (TypeError, ValueError):
            page = 0

        lastpage = max(math.ceil(total / pagesize) - 1, 0) if pagesize > 0 else 0
        self.currpage = min(max(page, 0), lastpage)

    def get_page_start(self) -> int:
        return self.currpage * self.pagesize

    # ===== Query =====

    def query_db(self, pagesize: int, paginate: bool = True):
        if self.sql is None:
            raise RuntimeError("set_sql() must be called before querying the table")

        paged = paginate and pagesize > 0 and not self.is_downloading()

        if paged:
            if self.countsql is None:
                self.countsql = f"SELECT COUNT(1) FROM {self.sql.from_} WHERE {self.sql.where}"
                self.countparams = self.sql.params
            total = self.database.count_records_sql(self.countsql, self.countparams)
            self.set_pagesize(pagesize, total)

        sql = f"SELECT {self.sql.fields} FROM {self.sql.from_} WHERE {self.sql.where}"
        sort = self.get_sql_sort()
        if sort:
            sql = f"{sql} ORDER BY {sort}"

        if paged:
            self.rawdata = self.database.get_records_sql(
                sql, self.sql.params, self.get_page_start(), self.pagesize
            )
        else:
            self.rawdata = self.database.get_records_sql(sql, self.sql.params)
            self.totalrows = len(self.rawdata)

    def format_row(self, row: Mapping[str, Any]) -> List[Any]:
        downloading = bool(self.is_downloading())
        cells = []
        for column in self.columns:
            formatter = self.formatters.get(column)
            if formatter is not None:
                cells.append(formatter(row))
                continue

            value = row.get(column)
            if downloading:
                cells.append(value)
            else:
                cells.append("" if value is None else html.escape(str(value)))
        return cells

    def out(self, pagesize: int, paginate: bool = True) -> TableOutput:
        """
        Run the query and render it, as HTML or as the requested download.

        For downloads every row is exported and pagesize is reported back as
        the total.
        """
        self.query_db(pagesize, paginate)

        if not self.columns and self.rawdata:
            self.define_columns(self.rawdata[0].keys())
        if len(self.headers) != len(self.columns):
            self.define_headers(self.columns)

        rows = [self.format_row(row) for row in self.rawdata]

        download = self.is_downloading()
        if download:
            content, media_type, filename = dataformat.export(
                download, self.filename, self.sheettitle, self.headers, rows
            )
            logger.info(f"Exported {len(rows)} rows from {self.uniqueid} as {download}")
            return TableOutput(
                content=content,
                media_type=media_type,
                filename=filename,
                total=pagesize,
                rows=len(rows),
            )

        return TableOutput(
            content=self.render_html(rows),
            media_type="text/html; charset=utf-8",
            total=self.totalrows,
            rows=len(rows),
        )

    # ===== HTML =====

    def make_url(self, **overrides: Any) -> str:
        parts = urlsplit(self.baseurl)
        query = dict(parse_qsl(parts.query))
        for name in URL_STATE_PARAMS:
            if self.params.get(name) not in (None, ""):
                query[name] = str(self.params[name])
        for name, value in overrides.items():
            if value is None or value == "":
                query.pop(name, None)
            else:
                query[name] = str(value)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))

    def render_html(self, rows: List[List[Any]]) -> str:
        if not rows:
            return '<div class="no-overflow"><h3>Nothing to display</h3></div>'

        output = []
        if self.downloadable and TABLE_P_TOP in self.download_buttons_at:
            output.append(self.download_buttons())

        attributes = {"id": self.uniqueid}
        attributes.update(self.attributes)
        attrs = " ".join(f'{name}="{html.escape(str(value))}"' for name, value in attributes.items())

        hidden = self.get_hidden_columns()
        lastindex = len(self.columns) - 1

        output.append(f"<table {attrs}>")
        output.append("<thead><tr>")
        for index, (column, header) in enumerate(zip(self.columns, self.headers)):
            classes = f"header c{index}" + (" lastcol" if index == lastindex else "")
            output.append(f'<th class="{classes}" scope="col">{self._header_cell(column, header, hidden)}</th>')
        output.append("</tr></thead>")

        output.append("<tbody>")
        for rownum, row in enumerate(rows):
            output.append(f'<tr id="{html.escape(self.uniqueid)}_r{rownum}">')
            for index, (column, cell) in enumerate(zip(self.columns, row)):
                classes = f"cell c{index}" + (" lastcol" if index == lastindex else "")
                content = "" if column in hidden or cell is None else cell
                output.append(f'<td class="{classes}">{content}</td>')
            output.append("</tr>")
        output.append("</tbody>")
        output.append("</table>")

        output.append(self.paging_bar())

        if self.downloadable and TABLE_P_BOTTOM in self.download_buttons_at:
            output.append(self.download_buttons())

        return "\n".join(part for part in output if part)

    def _header_cell(self, column: str, header: str, hidden: List[str]) -> str:
        label = html.escape(header)

        if column in hidden:
            remaining = ",".join(c for c in hidden if c != column)
            url = html.escape(self.make_url(thide=remaining))
            return f'<a href="{url}" title="Show {label}">+</a>'

        sorts = self.get_sort_columns()
        if self.is_sortable and column not in self.column_nosort:
            current = sorts[0] if sorts else None
            if current and current[0] == column:
                tdir = SORT_ASC if current[1] == SORT_DESC else SORT_DESC
                icon = " &#9660;" if current[1] == SORT_DESC else " &#9650;"
            else:
                tdir, icon = SORT_ASC, ""
            url = html.escape(self.make_url(tsort=column, tdir=tdir.lower(), page=None))
            label = f'<a href="{url}">{label}</a>{icon}'

        if self.is_collapsible:
            url = html.escape(self.make_url(thide=",".join(hidden + [column])))
            label += f' <a class="collapse" href="{url}" title="Hide {html.escape(header)}">&minus;</a>'

        return label

    def paging_bar(self) -> str:
        if self.pagesize <= 0 or self.totalrows <= self.pagesize:
            return ""

        pages = math.ceil(self.totalrows / self.pagesize)
        links = []
        if self.currpage > 0:
            url = html.escape(self.make_url(page=self.currpage - 1))
            links.append(f'<a class="previous" href="{url}">Previous</a>')

        # Window of page links around the current page
        start = max(self.currpage - PAGING_MAXDISPLAY // 2, 0)
        end = min(start + PAGING_MAXDISPLAY, pages)
        start = max(end - PAGING_MAXDISPLAY, 0)

        if start > 0:
            links.append(self._page_link(0))
            if start > 1:
                links.append('<span class="ellipsis">...</span>')
        for page in range(start, end):
            links.append(self._page_link(page))
        if end < pages:
            if end < pages - 1:
                links.append('<span class="ellipsis">...</span>')
            links.append(self._page_link(pages - 1))

        if self.currpage < pages - 1:
            url = html.escape(self.make_url(page=self.currpage + 1))
            links.append(f'<a class="next" href="{url}">Next</a>')

        return f'<nav class="paging" aria-label="Page">{" ".join(links)}</nav>'

    def _page_link(self, page: int) -> str:
        if page == self.currpage:
            return f'<span class="current-page">{page + 1}</span>'
        url = html.escape(self.make_url(page=page))
        return f'<a href="{url}">{page + 1}</a>'

    def download_buttons(self) -> str:
        parts = urlsplit(self.baseurl)
        action = html.escape(parts.path or "")
        selectid = html.escape(f"downloadtype_{self.uniqueid}")

        hidden_inputs = []
        for name, value in parse_qsl(parts.query):
            hidden_inputs.append(f'<input type="hidden" name="{html.escape(name)}" value="{html.escape(value)}">')
        for name in URL_STATE_PARAMS:
            if name != "page" and self.params.get(name) not in (None, ""):
                value = html.escape(str(self.params[name]))
                hidden_inputs.append(f'<input type="hidden" name="{name}" value="{value}">')

        options = "".join(
            f'<option value="{name}">{html.escape(label)}</option>'
            for name, (label, _media_type, _extension) in dataformat.DATAFORMATS.items()
        )

        return (
            f'<form method="get" action="{action}" class="dataformatselector">'
            f"{''.join(hidden_inputs)}"
            f'<label for="{selectid}">Download table data as</label>'
            f'<select name="download" id="{selectid}">{options}</select>'
            '<button type="submit">Download</button>'
            "</form>"
        )
