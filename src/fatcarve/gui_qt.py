from __future__ import annotations
import os, time, threading, traceback
from typing import Optional

from PySide6.QtCore import Signal, Slot, QObject, QThread
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QLabel, QLineEdit, QPushButton,
    QFileDialog, QCheckBox, QComboBox, QSpinBox, QProgressBar, QTableWidget,
    QTableWidgetItem, QGridLayout, QHBoxLayout, QVBoxLayout, QMessageBox
)

from . import __version__
from .config import CarveConfig, SUPPORTED_SECTOR_SIZES, SUPPORTED_FAT_TYPES
from .errors import RecoveryError
from .rawio import to_raw_if_drive
from .recovery import FileRecovery
from .utils import human_size

APP_NAME = "fatcarve"
QSS = """
*{font-family: 'Segoe UI','Inter','Roboto'; font-size:10.5pt;}
QMainWindow{background:#0F1115;}
QWidget{color:#E6E9EF;background:#0F1115;}
QLabel#Brand{color:#7BF79E;font-weight:700;font-size:18pt;}
QWidget#Card{background:#171A21;border:1px solid #232733;border-radius:12px;}
QLineEdit,QComboBox,QSpinBox{background:#0B0D11;border:1px solid #2A3040;border-radius:6px;padding:6px;}
QPushButton{background:#232733;border:1px solid #2F3542;border-radius:8px;padding:8px 14px;}
QPushButton#Primary{background:qlineargradient(x1:0,y1:0,x2:1,y2:0,stop:0 #22D3EE,stop:1 #3B82F6);border:none;color:white;font-weight:600;}
QProgressBar{border:1px solid #2A3040;border-radius:8px;background:#0B0D11;text-align:center;color:#AAB1BD;height:18px;}
QProgressBar::chunk{background:qlineargradient(x1:0,y1:0,x2:1,y2:0,stop:0 #22D3EE,stop:1 #3B82F6);border-radius:8px;}
QHeaderView::section{background:#171A21;border:1px solid #232733;padding:6px;}
QTableWidget{gridline-color:#232733;selection-background-color:#3B82F6;}
"""

class Worker(QObject):
    geometry = Signal(str)
    progress = Signal(int, int)
    found    = Signal(object)
    carved   = Signal(object)
    status   = Signal(str)
    error    = Signal(str)
    done     = Signal()

    def __init__(self, src: str, prefix: str, config: CarveConfig, max_images: int = 0):
        """
        Create a new worker.

        Parameters
        ----------
        src : str
            Source image or raw device path.
        prefix : str
            Output directory and file name prefix.
        config : CarveConfig
            Geometry overrides chosen in the window. The grace delay is
            always zero here, the operator already confirmed.
        max_images : int
            Carve at most this many images, 0 for all.
        """
        super().__init__()
        self.src = src
        self.prefix = prefix
        self.config = config
        self.max_images = max_images
        self._pause = threading.Event()
        self._stop = threading.Event()

    def _wait(self) -> bool:
        while self._pause.is_set() and not self._stop.is_set():
            time.sleep(0.05)
        return self._stop.is_set()

    @Slot()
    def run(self):
        """
        Resolve, scan and carve in the worker thread.

        Stop and pause are honoured during the scan, at every progress
        report, and between carved images. A stopped scan carves nothing.
        """
        rec = FileRecovery(
            self.src,
            self.prefix,
            self.config,
            progress_cb=self._on_scan_progress,
            max_images=self.max_images,
            stop_flag=self._stop.is_set,
        )
        try:
            with rec:
                self.status.emit("Reading boot sector…")
                self.geometry.emit(rec.resolve().summary())
                self.status.emit("Scanning…")
                images = []
                for img in rec.iter_scan():
                    images.append(img)
                    if rec.will_carve(img):
                        self.found.emit(img)
                if self._wait():
                    self.status.emit("Stopped")
                    self.done.emit()
                    return
                self.status.emit("Writing…")
                for r in rec.iter_carve(images):
                    self.carved.emit(r)
                    if self._wait():
                        self.status.emit("Stopped")
                        break
            self.done.emit()
        except RecoveryError as e:
            self.error.emit(str(e))
        except Exception:
            self.error.emit(traceback.format_exc())

    def _on_scan_progress(self, cur: int, total: int, found: int):
        self.progress.emit(int(cur), int(total))
        self._wait()

    def pause(self, yes: bool):
        if yes:
            self._pause.set()
        else:
            self._pause.clear()

    def stop(self):
        self._stop.set()

class Main(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle(f"{APP_NAME} v{__version__} (Qt)")
        self.setMinimumSize(1000, 620)
        self._build_ui()
        self._wire()
        self._reset_state()

    def _build_ui(self):
        root = QWidget(self)
        self.setCentralWidget(root)
        outer = QVBoxLayout(root)
        outer.setContentsMargins(12,12,12,12)
        outer.setSpacing(10)

        brand_row = QHBoxLayout()
        self.lblBrand = QLabel(f" {APP_NAME}", objectName="Brand")
        brand_row.addWidget(self.lblBrand)
        brand_row.addStretch(1)
        outer.addLayout(brand_row)

        io_card = QWidget(objectName="Card")
        io = QGridLayout(io_card)
        io.setContentsMargins(12,12,12,12)
        self.edSrc = QLineEdit()
        self.edOut = QLineEdit()
        self.edPrefix = QLineEdit("recovered_")
        self.btnFile = QPushButton("File…")
        self.btnDrive = QPushButton("Drive…")
        self.btnOut = QPushButton("Browse")
        io.addWidget(QLabel("Source"), 0, 0)
        io.addWidget(self.edSrc, 0, 1, 1, 3)
        io.addWidget(self.btnFile, 0, 4)
        io.addWidget(self.btnDrive, 0, 5)
        io.addWidget(QLabel("Output"), 1, 0)
        io.addWidget(self.edOut, 1, 1)
        io.addWidget(QLabel("Prefix"), 1, 2)
        io.addWidget(self.edPrefix, 1, 3)
        io.addWidget(self.btnOut, 1, 4)
        outer.addWidget(io_card)

        # overrides for a corrupt boot sector, same meaning as FAT_* variables
        opt_card = QWidget(objectName="Card")
        opt = QGridLayout(opt_card)
        opt.setContentsMargins(12,12,12,12)
        self.ckNoSig = QCheckBox("Ignore missing 55aa signature")
        self.cbSectorSize = QComboBox()
        for ss in SUPPORTED_SECTOR_SIZES:
            self.cbSectorSize.addItem(str(ss), ss)
        self.cbFatType = QComboBox()
        for ft in SUPPORTED_FAT_TYPES:
            self.cbFatType.addItem(f"FAT{ft}", ft)
        self.cbFatType.setCurrentIndex(SUPPORTED_FAT_TYPES.index(16))
        self.spSectors = QSpinBox()
        self.spSectors.setRange(0, 2_000_000_000)
        self.spSectors.setSpecialValueText("from boot sector")
        self.spMaxImages = QSpinBox()
        self.spMaxImages.setRange(0, 10_000_000)
        self.spMaxImages.setSpecialValueText("all")
        self.btnStart = QPushButton("Start", objectName="Primary")
        self.btnPause = QPushButton("Pause")
        self.btnStop = QPushButton("Stop")
        self.btnPause.setEnabled(False)
        self.btnStop.setEnabled(False)

        opt.addWidget(QLabel("Fallback sector size"), 0, 0)
        opt.addWidget(self.cbSectorSize, 0, 1)
        opt.addWidget(QLabel("Fallback FAT type"), 0, 2)
        opt.addWidget(self.cbFatType, 0, 3)
        opt.addWidget(QLabel("Sectors total"), 0, 4)
        opt.addWidget(self.spSectors, 0, 5)
        opt.addWidget(QLabel("Max images"), 0, 6)
        opt.addWidget(self.spMaxImages, 0, 7)
        opt.addWidget(self.ckNoSig, 1, 0, 1, 4)
        opt.addWidget(self.btnStart, 1, 5)
        opt.addWidget(self.btnPause, 1, 6)
        opt.addWidget(self.btnStop, 1, 7)
        outer.addWidget(opt_card)

        self.lblGeometry = QLabel("")
        self.lblGeometry.setStyleSheet("color:#9AA3B2")
        outer.addWidget(self.lblGeometry)

        self.pb = QProgressBar()
        self.pb.setMinimum(0)
        self.pb.setMaximum(1)
        outer.addWidget(self.pb)

        self.tbl = QTableWidget(0, 6)
        self.tbl.setHorizontalHeaderLabels(["id","type","start sector","sectors","size","path"])
        self.tbl.horizontalHeader().setStretchLastSection(True)
        outer.addWidget(self.tbl, 1)

    def _wire(self):
        self.btnFile.clicked.connect(self._pick_file)
        self.btnDrive.clicked.connect(self._pick_drive)
        self.btnOut.clicked.connect(self._pick_out)
        self.btnStart.clicked.connect(self._start)
        self.btnPause.clicked.connect(self._toggle_pause)
        self.btnStop.clicked.connect(self._stop)

    def _reset_state(self):
        self._thread: Optional[QThread] = None
        self._worker: Optional[Worker]  = None
        self.pb.setValue(0)
        self.pb.setMaximum(1)
        self.tbl.setRowCount(0)
        self.lblGeometry.setText("")
        self.setWindowTitle(f"{APP_NAME} Ready")

    def _pick_file(self):
        p, _ = QFileDialog.getOpenFileName(self, "Choose disk IMAGE file", "", "Images (*.img *.dd *.bin *.raw);;All files (*.*)")
        if p:
            self.edSrc.setText(p)

    def _pick_drive(self):
        d = QFileDialog.getExistingDirectory(self, "Choose DRIVE ROOT or device")
        if d:
            self.edSrc.setText(to_raw_if_drive(d))

    def _pick_out(self):
        p = QFileDialog.getExistingDirectory(self, "Choose output folder")
        if p:
            self.edOut.setText(p)

    def _config(self) -> CarveConfig:
        return CarveConfig(
            ignore_missing_signature=self.ckNoSig.isChecked(),
            sector_size=self.cbSectorSize.currentData(),
            sectors_total=self.spSectors.value() or None,
            fat_type=self.cbFatType.currentData(),
            grace_delay=0.0,
        )

    def _start(self):
        src = self.edSrc.text().strip()
        out = self.edOut.text().strip()
        if not src:
            QMessageBox.warning(self, "Missing", "Pick an image or a device")
            return
        if not out:
            QMessageBox.warning(self, "Missing", "Choose an output folder")
            return
        if self.ckNoSig.isChecked():
            ok = QMessageBox.question(self, "No signature check",
                                      "Devices without a FAT signature are scanned at your own risk. Continue?")
            if ok != QMessageBox.Yes:
                return
        self._reset_state()
        self.btnStart.setEnabled(False); self.btnPause.setEnabled(True); self.btnStop.setEnabled(True)
        prefix = os.path.join(out, self.edPrefix.text().strip())
        self._thread = QThread(self)
        self._worker = Worker(src, prefix, self._config(), self.spMaxImages.value())
        self._worker.moveToThread(self._thread)
        self._thread.started.connect(self._worker.run)
        self._worker.geometry.connect(self.lblGeometry.setText)
        self._worker.progress.connect(self._on_progress)
        self._worker.found.connect(self._on_found)
        self._worker.carved.connect(self._on_carved)
        self._worker.status.connect(lambda s: self.setWindowTitle(f"{APP_NAME} • {s}"))
        self._worker.error.connect(self._on_error)
        self._worker.done.connect(self._on_done)
        self._thread.start()

    def _toggle_pause(self):
        if not self._worker:
            return
        if self.btnPause.text() == "Pause":
            self._worker.pause(True)
            self.btnPause.setText("Resume")
        else:
            self._worker.pause(False)
            self.btnPause.setText("Pause")

    def _stop(self):
        if self._worker:
            self._worker.stop()

    @Slot(int, int)
    def _on_progress(self, cur: int, total: int):
        if total > 0:
            self.pb.setMaximum(total)
            self.pb.setValue(min(cur, total))
        else:
            self.pb.setMaximum(0)

    def _set(self, row: int, c: int, v):
        self.tbl.setItem(row, c, QTableWidgetItem(str(v)))

    @Slot(object)
    def _on_found(self, img):
        row = self.tbl.rowCount()
        self.tbl.insertRow(row)
        self._set(row, 0, img.id)
        self._set(row, 1, img.tag)
        self._set(row, 2, img.start_sector)

    @Slot(object)
    def _on_carved(self, r):
        row = r.image.id
        if row >= self.tbl.rowCount():
            return
        self._set(row, 3, r.sectors)
        self._set(row, 4, human_size(r.size))
        self._set(row, 5, r.out_path)
        if self.tbl.rowCount():
            self.pb.setMaximum(self.tbl.rowCount())
            self.pb.setValue(row + 1)

    @Slot()
    def _on_done(self):
        self.btnStart.setEnabled(True); self.btnPause.setEnabled(False); self.btnStop.setEnabled(False)
        self.btnPause.setText("Pause")
        if not self.windowTitle().endswith("Stopped"):
            self.setWindowTitle(f"{APP_NAME} Done")
        if self._thread:
            self._thread.quit(); self._thread.wait(1500)
        self._thread = None; self._worker = None

    @Slot(str)
    def _on_error(self, msg: str):
        QMessageBox.critical(self, "Error", msg)
        self._on_done()

def main() -> int:
    app = QApplication([])
    app.setStyleSheet(QSS)
    w = Main()
    w.show()
    return app.exec()
