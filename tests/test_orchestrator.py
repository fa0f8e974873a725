import pytest
import numpy as np
import sys
import os
from scipy.spatial.transform import Rotation

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_fusion.settings import EstimatorVariant, PredictionSettings
from robo_fusion.sensors.sample import PositionalData
from robo_fusion.estimation.orchestrator import (
    BatchEstimator,
    build_control,
    build_measurement,
    camera_angles,
    predict_from_recorded_data,
)


def stationary_samples(count=10, position=(1.0, 2.0, 0.0), confidence=0.9):
    return [PositionalData(camera_position=position, camera_confidence=confidence, delta_time=0.1)
            for _ in range(count)]


class TestMeasurementAndControl:
    """Test construction of filter inputs from samples"""

    def test_camera_angles(self):
        """Test yaw and pitch are read from the orientation quaternion"""
        quaternion = Rotation.from_euler('ZYX', [0.5, 0.2, 0.0]).as_quat()

        yaw, pitch = camera_angles(quaternion)

        assert yaw == pytest.approx(0.5)
        assert pitch == pytest.approx(0.2)

    def test_zero_quaternion(self):
        """Test a zero quaternion carries no orientation"""
        assert camera_angles(np.zeros(4)) is None

    def test_measurement_yaw_follows_reference_branch(self):
        """Test measured yaw is moved onto the reference branch"""
        sample = PositionalData(
            camera_orientation=Rotation.from_euler('ZYX', [-3.0, 0.0, 0.0]).as_quat())
        reference = np.array([0.0, 0.0, 0.0, 3.0, 0.0])

        measurement = build_measurement(sample, np.array([1.0, 2.0, 3.0]), reference)

        np.testing.assert_allclose(measurement[:3], [1.0, 2.0, 3.0])
        assert measurement[3] == pytest.approx(2 * np.pi - 3.0)

    def test_measurement_without_orientation(self):
        """Test missing orientation falls back to the reference angles"""
        sample = PositionalData(camera_orientation=np.zeros(4))
        reference = np.array([0.0, 0.0, 0.0, 0.7, -0.1])

        measurement = build_measurement(sample, np.zeros(3), reference)

        assert measurement[3] == pytest.approx(0.7)
        assert measurement[4] == pytest.approx(-0.1)

    def test_control(self):
        """Test the control vector layout"""
        sample = PositionalData(delta_time=0.1, steer_angle=130.0)

        control = build_control(np.array([0.1, 0.2, 0.3]), 1.5, sample)

        np.testing.assert_allclose(control, [0.1, 0.2, 0.3, 1.5, 0.1, 130.0])


class TestChannels:
    """Test channel filters and the speed channel"""

    def test_variant_selected_once(self):
        """Test the estimator variant follows the settings"""
        estimator = BatchEstimator(PredictionSettings(kalman_filter_camera=True))
        assert estimator.variant == EstimatorVariant.CAMERA_FILTERED

    def test_camera_filter_smooths_positions(self):
        """Test the camera channel filter damps jitter"""
        rng = np.random.default_rng(1)
        samples = [PositionalData(camera_position=rng.normal(0.0, 0.2, 3), delta_time=0.1)
                   for _ in range(50)]
        raw = np.array([sample.camera_position for sample in samples])

        cameras, gyros = BatchEstimator(
            PredictionSettings(kalman_filter_camera=True)).filter_channels(samples)

        np.testing.assert_allclose(cameras[0], raw[0])
        assert np.std(cameras[25:]) < np.std(raw[25:])
        np.testing.assert_allclose(gyros, 0.0)

    def test_unfiltered_channels_pass_through(self):
        """Test channels are untouched without channel filters"""
        samples = [PositionalData(camera_position=[i, 0.0, 0.0], imu_gyroscope=[0.0, 0.0, i])
                   for i in range(5)]

        cameras, gyros = BatchEstimator().filter_channels(samples)

        np.testing.assert_allclose(cameras[:, 0], np.arange(5))
        np.testing.assert_allclose(gyros[:, 2], np.arange(5))

    def test_speed_from_wheel_without_camera_trust(self):
        """Test zero camera confidence leaves the wheel speed"""
        samples = [PositionalData(camera_position=[0.3 * i, 0.0, 0.0], sensor_speed=0.5,
                                  camera_confidence=0.0, delta_time=0.1) for i in range(10)]
        estimator = BatchEstimator()

        speeds = estimator.speed_channel(samples, estimator.filter_channels(samples)[0])

        np.testing.assert_allclose(speeds, 0.5)

    def test_speed_from_trusted_camera(self):
        """Test full camera confidence uses the camera speed"""
        samples = [PositionalData(camera_position=[0.1 * i, 0.0, 0.0], sensor_speed=0.0,
                                  camera_confidence=1.0, delta_time=0.1) for i in range(10)]
        estimator = BatchEstimator()

        speeds = estimator.speed_channel(samples, estimator.filter_channels(samples)[0])

        np.testing.assert_allclose(speeds[3:8], 1.0)
        assert speeds[0] < 1.0


class TestBatchEstimation:
    """Test estimation over whole sample sequences"""

    def test_empty_input(self):
        """Test no samples yield no states"""
        assert predict_from_recorded_data([]) == []

    def test_single_sample_returns_seed(self):
        """Test one sample yields only the seed state"""
        trajectory = predict_from_recorded_data(stationary_samples(1))

        assert len(trajectory) == 1
        np.testing.assert_allclose(trajectory[0].position, [1.0, 2.0, 0.0])
        np.testing.assert_allclose(trajectory[0].covariance, np.eye(5))

    def test_stationary_convergence(self):
        """Test a stationary robot stays put while uncertainty shrinks"""
        trajectory = predict_from_recorded_data(stationary_samples(10))

        assert len(trajectory) == 10
        for state in trajectory:
            np.testing.assert_allclose(state.position, [1.0, 2.0, 0.0], atol=1e-9)
            assert not state.degraded
        variances = [np.diag(state.covariance) for state in trajectory]
        for earlier, later in zip(variances, variances[1:]):
            assert np.all(later <= earlier + 1e-12)

    @pytest.mark.parametrize("confidence,moved", [(0.0, False), (1.0, True)])
    def test_spike_follows_confidence(self, confidence, moved):
        """Test a camera outlier is followed only when it is trusted"""
        samples = stationary_samples(10, position=(0.0, 0.0, 0.0))
        samples[5] = PositionalData(camera_position=[0.0, 5.0, 0.0],
                                    camera_confidence=confidence, delta_time=0.1)

        trajectory = predict_from_recorded_data(samples)

        if moved:
            assert trajectory[5].position[1] > 4.5
        else:
            assert abs(trajectory[5].position[1]) < 0.5

    def test_prediction_only(self):
        """Test camera positions are ignored without the UKF update"""
        samples = [PositionalData(camera_position=[0.0, float(i), 0.0], camera_confidence=1.0,
                                  delta_time=0.1) for i in range(6)]

        trajectory = predict_from_recorded_data(samples, PredictionSettings(use_ukf=False))

        assert len(trajectory) == 6
        for state in trajectory:
            assert state.position[1] == pytest.approx(0.0, abs=1e-9)
        traces = [np.trace(state.covariance) for state in trajectory]
        assert all(later >= earlier for earlier, later in zip(traces, traces[1:]))

    def test_yaw_output_is_wrapped(self):
        """Test output yaw stays within (-π, π] while turning"""
        samples = [PositionalData(imu_gyroscope=[0.0, 0.0, 2.0], sensor_speed=0.5,
                                  camera_confidence=0.0, delta_time=0.5) for _ in range(20)]

        trajectory = predict_from_recorded_data(samples)

        for state in trajectory:
            assert -np.pi < state.yaw <= np.pi

    def test_iteration_can_stop_early(self):
        """Test estimates are produced lazily, one per sample"""
        estimates = BatchEstimator().iter_estimates(stationary_samples(10))

        first_two = [next(estimates), next(estimates)]

        assert len(first_two) == 2
        assert first_two[1].confidence == pytest.approx(0.9 ** 5)


def noisy_gyro_samples(count=50, seed=3):
    rng = np.random.default_rng(seed)
    return [PositionalData(imu_gyroscope=[0.0, 0.0, 0.2 + rng.normal(0.0, 0.5)],
                           camera_orientation=np.zeros(4), delta_time=0.1)
            for _ in range(count)]


def yaw_steps(trajectory):
    return np.diff(np.unwrap([state.yaw for state in trajectory]))


class TestGyroChannel:
    """Test the gyroscope channel filter inside whole estimation runs"""

    @pytest.mark.parametrize("use_ukf", [False, True])
    def test_filtered_gyro_steadies_yaw(self, use_ukf):
        """Test noisy yaw rates turn into steadier yaw increments when filtered"""
        samples = noisy_gyro_samples()

        raw = predict_from_recorded_data(samples, PredictionSettings(use_ukf=use_ukf))
        filtered = predict_from_recorded_data(
            samples, PredictionSettings(use_ukf=use_ukf, kalman_filter_gyro=True))

        assert np.std(yaw_steps(filtered)[10:]) < np.std(yaw_steps(raw)[10:])
        assert not any(state.degraded for state in filtered)

    def test_filtered_gyro_reaches_control(self):
        """Test the control carries the smoothed rates"""
        samples = noisy_gyro_samples()
        raw = np.array([sample.imu_gyroscope for sample in samples])

        _, gyros = BatchEstimator(PredictionSettings(kalman_filter_gyro=True)).filter_channels(samples)
        control = build_control(gyros[30], 0.0, samples[30])

        assert control[2] == pytest.approx(gyros[30, 2])
        assert np.std(gyros[10:, 2]) < np.std(raw[10:, 2])
        assert abs(np.mean(gyros[10:, 2]) - 0.2) < 0.3

    def test_combined_variant_smooths_both_channels(self):
        """Test camera and gyro channels are both smoothed by the combined variant"""
        rng = np.random.default_rng(5)
        samples = [PositionalData(camera_position=rng.normal(0.0, 0.2, 3),
                                  imu_gyroscope=rng.normal(0.0, 0.5, 3), delta_time=0.1)
                   for _ in range(50)]
        raw_cameras = np.array([sample.camera_position for sample in samples])
        raw_gyros = np.array([sample.imu_gyroscope for sample in samples])
        settings = PredictionSettings(kalman_filter_camera=True, kalman_filter_gyro=True)

        cameras, gyros = BatchEstimator(settings).filter_channels(samples)

        assert settings.variant == EstimatorVariant.CAMERA_AND_GYRO_FILTERED
        assert np.std(cameras[25:]) < np.std(raw_cameras[25:])
        assert np.std(gyros[25:]) < np.std(raw_gyros[25:])

    def test_combined_variant_run(self):
        """Test a full run with both channel filters stays finite"""
        settings = PredictionSettings(kalman_filter_camera=True, kalman_filter_gyro=True)

        trajectory = predict_from_recorded_data(noisy_gyro_samples(), settings)

        assert len(trajectory) == 50
        for state in trajectory:
            assert np.all(np.isfinite(state.covariance))
            assert not state.degraded


class TestCompassPrior:
    """Test the magnetometer pull on the previous yaw"""

    def compass_samples(self, magnetometer=(0.0, 1.0, 0.0), count=4):
        return [PositionalData(imu_magnetometer=magnetometer, delta_time=0.1) for _ in range(count)]

    def test_yaw_is_pulled_toward_compass(self):
        """Test each cycle moves the yaw by the factor toward the compass course"""
        settings = PredictionSettings(use_ukf=False, mag_influence=True, odo_mag_factor=0.5)

        trajectory = predict_from_recorded_data(self.compass_samples(), settings)

        assert trajectory[0].yaw == pytest.approx(0.0)
        assert trajectory[1].yaw == pytest.approx(np.pi / 4)
        assert trajectory[2].yaw == pytest.approx(3 * np.pi / 8)
        assert all(0.0 <= state.yaw <= np.pi / 2 for state in trajectory)

    def test_compass_pull_takes_short_way(self):
        """Test the pull crosses ±π instead of turning the long way round"""
        settings = PredictionSettings(use_ukf=False, mag_influence=True, odo_mag_factor=1.0)
        samples = self.compass_samples(magnetometer=(-1.0, -1e-3, 0.0), count=2)
        samples[0] = PositionalData(
            camera_orientation=Rotation.from_euler('ZYX', [3.0, 0.0, 0.0]).as_quat(),
            delta_time=0.1)

        trajectory = predict_from_recorded_data(samples, settings)

        assert trajectory[1].yaw == pytest.approx(np.arctan2(-1e-3, -1.0))

    def test_disabled_influence_ignores_compass(self):
        """Test the magnetometer is ignored unless its influence is enabled"""
        settings = PredictionSettings(use_ukf=False, odo_mag_factor=0.5)

        trajectory = predict_from_recorded_data(self.compass_samples(), settings)

        for state in trajectory:
            assert state.yaw == pytest.approx(0.0)

    def test_missing_reading_keeps_yaw(self):
        """Test samples without a magnetic reading leave the yaw alone"""
        settings = PredictionSettings(use_ukf=False, mag_influence=True, odo_mag_factor=0.5)

        trajectory = predict_from_recorded_data(self.compass_samples((0.0, 0.0, 0.0)), settings)

        for state in trajectory:
            assert state.yaw == pytest.approx(0.0)

    def test_pull_with_fusion(self):
        """Test the compass pull also applies ahead of a fused cycle"""
        settings = PredictionSettings(mag_influence=True, odo_mag_factor=0.5)
        samples = [PositionalData(imu_magnetometer=[0.0, 1.0, 0.0], camera_orientation=np.zeros(4),
                                  delta_time=0.1) for _ in range(3)]

        trajectory = predict_from_recorded_data(samples, settings)

        assert trajectory[1].yaw == pytest.approx(np.pi / 4)
        assert not trajectory[1].degraded
