"""Physical constants and units for the reference transport engine.

Internal units: MeV for energy, mm for length, g/cm³ for density.
"""

# Fundamental constants
ELECTRON_MASS_MEV = 0.51099895  # Electron rest mass energy in MeV
CLASSICAL_ELECTRON_RADIUS_CM = 2.8179403262e-13  # Classical electron radius in cm
AVOGADRO = 6.02214076e23  # Avogadro constant in 1/mol

# Thresholds
PAIR_THRESHOLD_MEV = 2.0 * ELECTRON_MASS_MEV  # Pair production threshold
STANDARD_LOW_ENERGY_LIMIT_MEV = 1.0e-3  # Lowest model energy, standard EM
LIVERMORE_LOW_ENERGY_LIMIT_MEV = 250.0e-6  # Lowest model energy, Livermore EM

# Numerical constants
EPSILON = 1e-12  # Small number to avoid division by zero
BOUNDARY_PUSH_MM = 1e-7  # Distance a track is pushed across a voxel boundary
MAX_STEPS_PER_TRACK = 100000  # Safety limit on steps of a single track

# Physics parameters
HIGHLAND_CONSTANT_MEV = 13.6  # Highland formula constant
HIGHLAND_LOG_COEFFICIENT = 0.038  # Highland formula log term
WATER_Z_OVER_A = 0.5551  # Z/A of water, stopping power reference
WATER_STOPPING_POWER = 2.0  # Minimum-ionising collision stopping power of water in MeV cm²/g
PHOTOELECTRIC_COEFFICIENT = 7.0e-9  # mu/rho = C * Zeff^3 / E^3, cm²/g with E in MeV
PAIR_COEFFICIENT = 3.7e-4  # mu/rho = C * Zeff * ln(E / threshold), cm²/g

# Conversion factors
MM_TO_CM = 0.1
CM_TO_MM = 10.0

ENERGY_UNITS = {
    'eV': 1.0e-6,
    'keV': 1.0e-3,
    'MeV': 1.0,
    'GeV': 1.0e3,
}

LENGTH_UNITS = {
    'um': 1.0e-3,
    'mm': 1.0,
    'cm': 10.0,
    'm': 1000.0,
}
