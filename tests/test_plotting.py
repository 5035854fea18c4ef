"""PDF report and the headless runner."""

import os

import numpy as np

from fieldconfig.default_settings import DEFAULT_SETTINGS
from fieldsim.engine import create_engine
from fieldsim.experiments import run_experiment
from fieldsim.plotting import collect_graph_data, generate_plots_pdf

import main


def test_collect_graph_data_copies_engine_state():
    engine = create_engine(resolution=16, model='thermal')
    run_experiment(engine, 'diffusion')
    engine.measure()
    data = collect_graph_data(engine)
    assert data['model'] == 'thermal_numba'
    assert data['channel'] == 'temperature'
    assert data['final_field'].shape == (16, 16)
    assert data['final_derivative_magnitude'].shape == (16, 16)
    assert len(data['history']) == 1
    assert not np.shares_memory(data['final_field'], engine.get_current_buffer())


def test_generate_plots_pdf(tmp_path):
    engine = create_engine(resolution=16, model='thermal')
    run_experiment(engine, 'convection')
    for _ in range(5):
        engine.step()
        engine.measure()
    filename = generate_plots_pdf(collect_graph_data(engine), DEFAULT_SETTINGS['GRAPH_SETTINGS'], str(tmp_path))
    assert filename.endswith(".pdf")
    assert os.path.getsize(filename) > 0


def test_generate_plots_pdf_without_history(tmp_path):
    engine = create_engine(resolution=16, model='wave')
    filename = generate_plots_pdf(collect_graph_data(engine), DEFAULT_SETTINGS['GRAPH_SETTINGS'], str(tmp_path))
    assert os.path.exists(filename)


def test_generate_plots_pdf_needs_data(tmp_path):
    assert generate_plots_pdf({}, DEFAULT_SETTINGS['GRAPH_SETTINGS'], str(tmp_path)) == ""


def test_headless_runner(tmp_path):
    code = main.main(['-e', 'random_drops', '-f', '4', '-n', '32', '-m', '2', '-o', str(tmp_path)])
    assert code == 0
    assert len(list(tmp_path.glob("fieldsim_wave_numba_*.pdf"))) == 1


def test_headless_runner_rejects_bad_parameter(tmp_path):
    code = main.main(['-e', 'diffusion', '-f', '1', '-n', '16', '-p', 'waveSpeed=3', '--no-plots'])
    assert code == 2
