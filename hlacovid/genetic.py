# File: hlacovid/genetic.py
# Location: hlacovid/hlacovid/genetic.py

"""
PLINK genotype input.

Reads a ``.bed/.bim/.fam`` triplet into a ``GeneticData`` object exposing the
sample identifiers (IID column of the .fam file), the genotype dosage matrix
and the marker map. Genotypes are read with ``bed-reader`` and coded as
counts of the A1 allele (0/1/2) with NaN for missing calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd

from .pipeline_core.error_handling import FileFormatError

logger = logging.getLogger("hlacovid")

_BIM_COLUMNS = ["CHROM", "SNP", "CM", "POS", "A1", "A2"]


@dataclass(frozen=True)
class GeneticData:
    """
    In-memory genetic samples.

    Fields
    ------
    sample_ids : list[str]
        Sample identifiers in genotype row order.
    genotypes : np.ndarray, shape (n_samples, n_markers)
        A1 allele dosages, NaN for missing.
    snp_map : pd.DataFrame
        Marker metadata with columns CHROM, SNP, CM, POS, A1, A2.
    """

    sample_ids: list[str]
    genotypes: np.ndarray
    snp_map: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=_BIM_COLUMNS))

    @property
    def n_samples(self) -> int:
        """Number of genotyped samples."""
        return len(self.sample_ids)


def _resolve_plink_paths(prefix: str | Path) -> tuple[Path, Path, Path]:
    p = Path(prefix)
    pref = p.with_suffix("") if p.suffix.lower() == ".bed" else p
    paths = tuple(Path(f"{pref}{ext}") for ext in (".bed", ".bim", ".fam"))
    for fp in paths:
        if not fp.exists():
            raise FileNotFoundError(f"Missing PLINK file: {fp}")
    return paths  # type: ignore[return-value]


def _read_fam_ids(fam_path: Path) -> list[str]:
    fam = pd.read_csv(fam_path, sep=r"\s+", header=None, dtype=str)
    if fam.empty or fam.shape[1] < 2:
        raise FileFormatError(str(fam_path), "PLINK .fam (FID IID ...)", "genetic loading")
    return fam[1].tolist()


def _read_bim_map(bim_path: Path) -> pd.DataFrame:
    bim = pd.read_csv(bim_path, sep=r"\s+", header=None, dtype={0: str, 1: str, 4: str, 5: str})
    if bim.shape[1] < 6:
        raise FileFormatError(str(bim_path), "PLINK .bim (6 columns)", "genetic loading")
    bim = bim.iloc[:, :6]
    bim.columns = _BIM_COLUMNS
    return bim


def load_plink(prefix: str | Path) -> GeneticData:
    """
    Load a PLINK 1 binary fileset.

    Parameters
    ----------
    prefix : str or Path
        Path prefix shared by the three files, or the path of the .bed file.

    Returns
    -------
    GeneticData

    Raises
    ------
    FileNotFoundError
        If any of the three files is missing.
    FileFormatError
        If the .fam/.bim files are malformed or disagree with the .bed shape.
    """
    from bed_reader import open_bed

    bed_path, bim_path, fam_path = _resolve_plink_paths(prefix)
    sample_ids = _read_fam_ids(fam_path)
    snp_map = _read_bim_map(bim_path)

    with open_bed(bed_path, count_A1=True) as bed:
        genotypes = bed.read(dtype="float32")

    if genotypes.shape != (len(sample_ids), len(snp_map)):
        raise FileFormatError(
            str(bed_path),
            f"{len(sample_ids)} x {len(snp_map)} genotype matrix, found {genotypes.shape}",
            "genetic loading",
        )

    logger.info(
        f"Loaded {len(sample_ids)} samples x {len(snp_map)} markers from {bed_path.with_suffix('')}"
    )
    return GeneticData(sample_ids=sample_ids, genotypes=np.asarray(genotypes), snp_map=snp_map)
