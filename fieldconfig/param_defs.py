# fieldsim/fieldconfig/param_defs.py
"""
Runtime-tunable parameter definitions (for sliders and `Engine.set_parameter`).

Every entry carries the documented range; values outside [min, max] are clamped
silently by the engine, never rejected. 'models' lists the update kernels that
understand the parameter.
"""

PARAM_DEFS = {
      # --- Thermal (diffusion + convection) ---
      'diffusivity': {'label':'Diffusivity α',  'min':0.01,'max':2.0,  'step':0.01, 'val':0.1,   'fmt':"{:.2f}", 'live':True, 'models':('thermal_numba',)},
      'retention':   {'label':'Heat Retention', 'min':0.9, 'max':0.999,'step':0.001,'val':0.995, 'fmt':"{:.3f}", 'live':True, 'models':('thermal_numba',)},
      'gravity':     {'label':'Convection g',   'min':0.0, 'max':1.0,  'step':0.01, 'val':0.1,   'fmt':"{:.2f}", 'live':True, 'models':('thermal_numba',)},
      'dt':          {'label':'Timestep (dt)',  'min':0.001,'max':0.1, 'step':0.001,'val':0.016, 'fmt':"{:.3f}", 'live':True, 'models':('thermal_numba',)},

      # --- Wave (height field) ---
      'wave_speed':  {'label':'Wave Speed c',   'min':0.1, 'max':5.0,  'step':0.1,  'val':2.0,   'fmt':"{:.1f}", 'live':True, 'models':('wave_numba',)},
      'damping':     {'label':'Damping',        'min':0.9, 'max':0.999,'step':0.001,'val':0.995, 'fmt':"{:.3f}", 'live':True, 'models':('wave_numba',)},
}

# camelCase names used by the browser front end
PARAM_ALIASES = {
      'waveSpeed': 'wave_speed',
}

# --- VALIDATION ---
for _name, _pdef in PARAM_DEFS.items():
    if not _pdef['min'] <= _pdef['val'] <= _pdef['max']:
        raise ValueError(f"PARAM_DEFS['{_name}'] default {_pdef['val']} outside [{_pdef['min']}, {_pdef['max']}]")
for _alias, _target in PARAM_ALIASES.items():
    if _target not in PARAM_DEFS:
        raise ValueError(f"PARAM_ALIASES['{_alias}'] points to unknown parameter '{_target}'")
