# fieldsim/constants.py
"""
Constants used by the measurement subsystem and the kernels.
"""

# --- Dimensionless numbers (simplified fluid properties) ---
CONST_nu       = 1e-6     # kinematic viscosity
CONST_beta     = 1e-3     # thermal expansion coefficient
CONST_L        = 1.0      # characteristic length
RA_CRITICAL    = 1708.0   # onset of convection in a layer heated from below
NU_COEFF       = 0.54     # Nu = NU_COEFF * Ra ** NU_EXPONENT above RA_CRITICAL
NU_EXPONENT    = 0.25

# --- Display ---
GRADIENT_DISPLAY_SCALE = 10.0 # gradients are divided by this for rendering
