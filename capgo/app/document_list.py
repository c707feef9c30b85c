"""Dockable side panel listing the open documents."""
from __future__ import annotations

from PyQt6.QtCore import pyqtSignal, Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QDockWidget, QWidget, QVBoxLayout, QHBoxLayout, QTableWidget,
    QTableWidgetItem, QHeaderView, QAbstractItemView, QPushButton, QCheckBox,
)

from app.stamp import Document, DocumentStatus

_COL_SEL    = 0
_COL_NAME   = 1
_COL_STAMPS = 2
_COL_STATUS = 3
_HEADERS    = ["", "Document", "Stamps", "Status"]

_STATUS_COLORS = {
    DocumentStatus.PENDING:    QColor("#71717a"),
    DocumentStatus.PROCESSING: QColor("#d97706"),
    DocumentStatus.COMPLETED:  QColor("#16a34a"),
    DocumentStatus.ERROR:      QColor("#dc2626"),
}


class DocumentListWidget(QDockWidget):
    document_activated = pyqtSignal(str)          # uid
    selection_toggled  = pyqtSignal(str, bool)    # uid, selected
    select_all_toggled = pyqtSignal(bool)
    remove_requested   = pyqtSignal(str)          # uid

    def __init__(self, parent=None):
        super().__init__("Documents", parent)
        self.setAllowedAreas(
            Qt.DockWidgetArea.RightDockWidgetArea |
            Qt.DockWidgetArea.LeftDockWidgetArea
        )
        self._uid_for_row: list[str] = []

        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(4, 4, 4, 4)

        self._select_all = QCheckBox("Select all")
        self._select_all.setChecked(True)
        self._select_all.toggled.connect(self.select_all_toggled)
        layout.addWidget(self._select_all)

        self._table = QTableWidget(0, len(_HEADERS))
        self._table.setHorizontalHeaderLabels(_HEADERS)
        header = self._table.horizontalHeader()
        header.setSectionResizeMode(_COL_NAME, QHeaderView.ResizeMode.Stretch)
        for col in (_COL_SEL, _COL_STAMPS, _COL_STATUS):
            header.setSectionResizeMode(col, QHeaderView.ResizeMode.ResizeToContents)
        self._table.setSelectionBehavior(
            QAbstractItemView.SelectionBehavior.SelectRows
        )
        self._table.setSelectionMode(
            QAbstractItemView.SelectionMode.SingleSelection
        )
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.verticalHeader().setVisible(False)
        self._table.cellClicked.connect(self._on_row_clicked)
        self._table.itemChanged.connect(self._on_item_changed)
        layout.addWidget(self._table)

        buttons = QHBoxLayout()
        remove_btn = QPushButton("Remove")
        remove_btn.clicked.connect(self._on_remove_clicked)
        buttons.addWidget(remove_btn)
        buttons.addStretch(1)
        layout.addLayout(buttons)

        self.setWidget(container)
        self.setMinimumWidth(260)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_documents(self, documents: list[Document], active_uid: str = ""):
        self._table.blockSignals(True)
        self._table.setRowCount(0)
        self._uid_for_row.clear()

        for doc in documents:
            row = self._table.rowCount()
            self._table.insertRow(row)
            self._uid_for_row.append(doc.uid)

            sel_item = QTableWidgetItem()
            sel_item.setFlags(Qt.ItemFlag.ItemIsUserCheckable | Qt.ItemFlag.ItemIsEnabled)
            sel_item.setCheckState(
                Qt.CheckState.Checked if doc.selected else Qt.CheckState.Unchecked
            )
            self._table.setItem(row, _COL_SEL, sel_item)

            name_item = QTableWidgetItem(doc.name)
            name_item.setToolTip(doc.result_path or doc.path)
            self._table.setItem(row, _COL_NAME, name_item)

            self._table.setItem(row, _COL_STAMPS, QTableWidgetItem(str(len(doc.stamps))))

            status_item = QTableWidgetItem(doc.status.value)
            status_item.setForeground(_STATUS_COLORS[doc.status])
            if doc.error_message:
                status_item.setToolTip(doc.error_message)
            self._table.setItem(row, _COL_STATUS, status_item)

            if doc.uid == active_uid:
                self._table.selectRow(row)

        self._table.blockSignals(False)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_row_clicked(self, row: int, col: int):
        if col != _COL_SEL and row < len(self._uid_for_row):
            self.document_activated.emit(self._uid_for_row[row])

    def _on_item_changed(self, item: QTableWidgetItem):
        if item.column() != _COL_SEL or item.row() >= len(self._uid_for_row):
            return
        checked = item.checkState() == Qt.CheckState.Checked
        self.selection_toggled.emit(self._uid_for_row[item.row()], checked)

    def _on_remove_clicked(self):
        row = self._table.currentRow()
        if 0 <= row < len(self._uid_for_row):
            self.remove_requested.emit(self._uid_for_row[row])
