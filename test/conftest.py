import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def seed_catalog(repo) -> None:
    """Product P at 1000, treatment A expecting 2 x P sold 5000, package [A, A] at 9000."""
    from clinicost.domain.models import ExpectedConsumable

    repo.add_product("P", "Hyaluronic syringe", 1000.0, quantity=10, min_quantity=4, unit="ml")
    repo.add_treatment("A", "Lip filler", 5000.0, [ExpectedConsumable("P", 2)], description="Volume")
    repo.add_package("F1", "Lip filler x2", ["A", "A"], prix_total=10000.0, prix_reduit=9000.0, nb_seances=2)
