import html
import time
import uuid
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlencode

from lockstats.core.formatting import format_time
from lockstats.core.table import SORT_DESC, TABLE_P_BOTTOM, SqlTable, TableOutput
from lockstats.logger import logger
from lockstats.storage.config_store import ConfigStore
from lockstats.storage.database import Database

PLUGIN = "tool_lockstats"
HISTORY_TABLE = "tool_lockstats_history"
DETAIL_PATH = "/admin/tool/lockstats/detail.php"

# Only locks released within this window are reported
HISTORY_WINDOW = 7 * 24 * 60 * 60


def detail_url(taskid: Any) -> str:
    return f"{DETAIL_PATH}?{urlencode({'task': taskid, 'tsort': 'duration'})}"


def task_label(classname: str) -> str:
    """
    Friendly name from the last backslash separated segment of a class name,
    e.g. tool_lockstats\\task\\cleanup_task -> "Cleanup Task".
    """
    name = classname.split("\\")[-1].replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" "))


class HistoryTable:
    """
    Average lock hold time per task class over the last week.

    Rendering, sorting, paging and export are done by the composed SqlTable;
    this class supplies the query and the duration/classname cells.
    """

    def __init__(
        self,
        baseurl: str,
        database: Database,
        config: ConfigStore,
        id: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.database = database
        self.id = uuid.uuid4().hex if id is None else str(id)
        self.table = SqlTable(f"{HISTORY_TABLE}{self.id}", database, params)

        columns = {
            "duration": "duration",
            "classname": "Name",
        }

        self.table.define_columns(columns.keys())
        self.table.define_headers(columns.values())

        self.table.define_baseurl(baseurl)

        self.table.set_attribute("class", "generaltable admintable")
        self.table.set_attribute("cellspacing", "0")

        self.table.sortable(True, "duration", SORT_DESC)

        self.table.collapsible(False)

        self.table.is_downloadable(True)
        self.table.show_download_buttons_at([TABLE_P_BOTTOM])

        self.table.set_column_formatter("duration", self.col_duration)
        self.table.set_column_formatter("classname", self.col_classname)

        threshold = config.get_config(PLUGIN, "threshold")

        fields = "*"
        from_ = f"""(
          SELECT max(id) id,
                 max(taskid) taskid,
                 classname,
                 max(duration / lockcount) duration
            FROM {HISTORY_TABLE}
           WHERE duration > 0
             AND lockcount > 0
             AND (duration / lockcount) > :threshold
             AND released > :releasedafter
        GROUP BY classname
        ) sub"""
        where = " 1 = 1 "
        params = {
            # Config values are text, the comparison has to be numeric
            "threshold": float(threshold) if threshold is not None else None,
            "releasedafter": int(clock()) - HISTORY_WINDOW,
        }

        self.table.set_sql(fields, from_, where, params)

    @property
    def uniqueid(self) -> str:
        return self.table.uniqueid

    def is_downloading(self, download: Optional[str] = None, filename: Optional[str] = None,
                       sheettitle: Optional[str] = None) -> str:
        return self.table.is_downloading(download, filename, sheettitle)

    def out(self, pagesize: int, paginate: bool = True) -> TableOutput:
        return self.table.out(pagesize, paginate)

    def download(self) -> TableOutput:
        """
        Export every grouped row.

        The reported total is the size of the raw history table, not the
        number of exported rows.
        """
        total = self.database.count_records_sql(f"SELECT COUNT(id) FROM {HISTORY_TABLE}")
        logger.debug(f"Downloading {self.uniqueid}, {total} raw history rows")
        return self.out(total, False)

    def col_duration(self, values: Mapping[str, Any]) -> Optional[str]:
        """
        The time the lock was held for.
        """
        lockcount = values.get("lockcount")
        duration = values.get("duration")

        if lockcount is not None and lockcount > 0:
            # A missing duration counts as zero once there are locks to divide by
            duration = (duration or 0) / lockcount

        if self.table.is_downloading():
            return None if duration is None else "%.4f" % duration

        return format_time(duration)

    def col_classname(self, values: Mapping[str, Any]) -> Any:
        """
        A link to the task.
        """
        if self.table.is_downloading():
            return values.get("taskid")

        classname = values.get("classname") or ""
        url = html.escape(detail_url(values.get("taskid")))
        label = html.escape(task_label(classname))

        return (
            f'<a href="{url}">{label}</a>'
            "\n"
            f'<span class="task-class">{html.escape(classname)}</span>'
        )
